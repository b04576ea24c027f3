"""Log levels, formats and scrubbing of credentials from log output."""
from __future__ import annotations

import logging
import re

from flask import Flask

VERBOSE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
QUIET_LOGGERS = ("werkzeug", "urllib3.connectionpool", "flask_limiter")

# Applied in order; the bearer rule must run before the generic secret rule.
_SCRUBBERS = (
    (re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"), "[REDACTED_EMAIL]"),
    (re.compile(r"Bearer\s+[\w\-.=:+/]+", re.IGNORECASE), "Bearer [REDACTED]"),
    # WooCommerce credentials travel as query parameters on every Flora call.
    (re.compile(r"(consumer_key|consumer_secret)=[^&\s'\"]+", re.IGNORECASE), r"\1=[REDACTED]"),
    (
        re.compile(r"(token|api[_-]?key|secret|password|passwd|authorization)\s*[:=]\s*[^\s,;&]+", re.IGNORECASE),
        r"\1=[REDACTED]",
    ),
)


def redact(message: str) -> str:
    for pattern, replacement in _SCRUBBERS:
        message = pattern.sub(replacement, message)
    return message


class PiiRedactionFilter(logging.Filter):
    """Render the record once, scrub it, and drop the args."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg, record.args = redact(rendered), ()
        return True


def _coerce_level(value) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value or "").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app: Flask) -> None:
    level = _coerce_level(app.config.get("LOG_LEVEL") or ("DEBUG" if app.debug else "INFO"))
    root = logging.getLogger()
    root.setLevel(level)
    app.logger.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    compact = app.config.get("ENV") == "production" and not app.debug
    formatter = logging.Formatter(COMPACT_FORMAT if compact else VERBOSE_FORMAT)
    scrub = app.config.get("LOG_REDACT_PII", True)

    for handler in [*root.handlers, *app.logger.handlers]:
        handler.setFormatter(formatter)
        if scrub and not any(isinstance(f, PiiRedactionFilter) for f in handler.filters):
            handler.addFilter(PiiRedactionFilter())
