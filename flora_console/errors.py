"""Error taxonomy and JSON error handlers.

Synopsis:
Every failure the console can surface ends up as a human-readable string shown
in a dismissible banner. The exceptions here carry that string plus the HTTP
status the JSON endpoints should answer with.

Glossary:
- Upstream: the WordPress/WooCommerce host running the Flora plugins.
- Wizard state error: an action requested in the wrong conversion stage.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class FloraConsoleError(Exception):
    """Base class for errors that carry a user-facing message."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message}


class FloraApiError(FloraConsoleError):
    """Transport failure, non-2xx answer or unparseable body from the Flora API."""

    status_code = 502

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message, status_code)
        self.payload = payload

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if isinstance(self.payload, dict):
            data["details"] = self.payload
        return data


class FloraNetworkError(FloraApiError):
    """The Flora host could not be reached at all."""


class ConversionStateError(FloraConsoleError):
    """The requested wizard action is not allowed in the current stage."""

    status_code = 409


class ValidationFailed(FloraConsoleError):
    """Input rejected before anything was sent upstream."""

    status_code = 422

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


def register_error_handlers(app) -> None:
    @app.errorhandler(FloraConsoleError)
    def _console_error(err: FloraConsoleError):
        if isinstance(err, FloraApiError):
            logger.warning("Flora API error (%s): %s", err.status_code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return jsonify({"success": False, "error": err.description}), err.code

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logger.exception("Unhandled error: %s", err)
        return jsonify({"success": False, "error": "Internal server error"}), 500
