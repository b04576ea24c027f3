"""
Environment-driven settings.

``FLASK_ENV`` picks one of the config classes below. Every value can be
overridden from the process environment; malformed values fall back to the
default and are reported once at startup through ``ENV_DIAGNOSTICS``.
"""
from __future__ import annotations

import os
from datetime import timedelta
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

ENVIRONMENTS = ("development", "testing", "staging", "production")
SECURE_ENVIRONMENTS = ("staging", "production")
DEFAULT_FLORA_URL = "https://api.floradistro.com"

_BOOLEANS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


class EnvReader:
    """Typed access to environment variables that records bad values."""

    def __init__(self, source: Mapping[str, str] | None = None):
        self.source = dict(os.environ if source is None else source)
        self.warnings: list[str] = []

    def str(self, key: str, default: str | None = None) -> str | None:
        value = (self.source.get(key) or "").strip()
        return value or default

    def _parsed(self, key: str, default: Any, parse: Callable[[str], Any], kind: str) -> Any:
        value = self.str(key)
        if value is None:
            return default
        try:
            return parse(value)
        except (KeyError, ValueError):
            self.warnings.append(f"{key}={value!r} is not a valid {kind}; using {default!r}.")
            return default

    def int(self, key: str, default: int = 0) -> int:
        return self._parsed(key, default, int, "integer")

    def float(self, key: str, default: float = 0.0) -> float:
        return self._parsed(key, default, float, "number")

    def bool(self, key: str, default: bool = False) -> bool:
        return self._parsed(key, default, lambda value: _BOOLEANS[value.lower()], "boolean")


def resolve_environment(reader: EnvReader) -> str:
    requested = reader.str("FLASK_ENV", "development")
    name = requested.lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(f"FLASK_ENV={requested!r} is not one of {', '.join(ENVIRONMENTS)}.")
    return name


def _normalize_api_url(url: str | None) -> str:
    """Strip trailing slashes and any ``/wp-json`` suffix pasted from the WP admin."""
    if not url:
        return DEFAULT_FLORA_URL
    normalized = url.strip().rstrip("/")
    if normalized.endswith("/wp-json"):
        normalized = normalized[: -len("/wp-json")]
    if not urlparse(normalized).scheme:
        normalized = f"https://{normalized}"
    return normalized


def _check_flora_credentials(reader: EnvReader, env_name: str) -> None:
    missing = [key for key in ("FLORA_CONSUMER_KEY", "FLORA_CONSUMER_SECRET") if not reader.str(key)]
    if not missing:
        return
    names = ", ".join(missing)
    if env_name in SECURE_ENVIRONMENTS:
        raise RuntimeError(f"{names} must be set for {env_name} environments.")
    reader.warnings.append(
        f"{names} not set; requests to the Flora API will be rejected as unauthenticated."
    )


def _shared_storage_uri(reader: EnvReader) -> str:
    """Limiter storage: explicit URI first, then the shared Redis, then process memory."""
    return (
        reader.str("RATELIMIT_STORAGE_URI")
        or reader.str("RATELIMIT_STORAGE_URL")
        or reader.str("REDIS_URL")
        or "memory://"
    )


env = EnvReader()
ACTIVE_ENV = resolve_environment(env)
_check_flora_credentials(env, ACTIVE_ENV)


class BaseConfig:
    FLASK_ENV = ACTIVE_ENV
    SECRET_KEY = env.str("FLASK_SECRET_KEY", "devkey-please-change-in-production")
    DEBUG = False
    TESTING = False

    # Wizard state lives in server-side sessions keyed by a signed cookie.
    SESSION_TYPE = env.str("SESSION_TYPE", "filesystem")
    SESSION_PERMANENT = True
    SESSION_USE_SIGNER = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=env.int("SESSION_LIFETIME_MINUTES", 60))
    WTF_CSRF_ENABLED = True

    FLORA_API_URL = _normalize_api_url(env.str("FLORA_API_URL"))
    FLORA_CONSUMER_KEY = env.str("FLORA_CONSUMER_KEY")
    FLORA_CONSUMER_SECRET = env.str("FLORA_CONSUMER_SECRET")
    FLORA_REQUEST_TIMEOUT = env.float("FLORA_REQUEST_TIMEOUT", 10.0)

    # Presentation-only classification of yield variance, in percent.
    VARIANCE_MEDIUM_THRESHOLD = env.float("VARIANCE_MEDIUM_THRESHOLD", 5.0)
    VARIANCE_HIGH_THRESHOLD = env.float("VARIANCE_HIGH_THRESHOLD", 10.0)
    VARIANCE_REASON_PROMPT_THRESHOLD = env.float("VARIANCE_REASON_PROMPT_THRESHOLD", 3.0)
    VARIANCE_REASONS_CACHE_TTL = env.int("VARIANCE_REASONS_CACHE_TTL", 300)

    RATELIMIT_ENABLED = env.bool("RATELIMIT_ENABLED", True)
    RATELIMIT_DEFAULT = env.str("RATELIMIT_DEFAULT", "600 per minute")
    RATELIMIT_STORAGE_URI = env.str("RATELIMIT_STORAGE_URI") or "memory://"

    CACHE_TYPE = env.str("CACHE_TYPE", "SimpleCache")
    CACHE_REDIS_URL = env.str("CACHE_REDIS_URL") or env.str("REDIS_URL")
    CACHE_DEFAULT_TIMEOUT = env.int("CACHE_DEFAULT_TIMEOUT", 120)

    LOG_LEVEL = env.str("LOG_LEVEL", "WARNING")
    LOG_REDACT_PII = env.bool("LOG_REDACT_PII", True)


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True
    LOG_LEVEL = env.str("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    CACHE_TYPE = "NullCache"
    FLORA_API_URL = "https://flora.test"
    FLORA_CONSUMER_KEY = "ck_test"
    FLORA_CONSUMER_SECRET = "cs_test"


class StagingConfig(BaseConfig):
    ENV = "staging"
    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = "https"
    RATELIMIT_STORAGE_URI = _shared_storage_uri(env)


class ProductionConfig(StagingConfig):
    ENV = "production"
    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")


CONFIGS = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}


def get_config():
    return CONFIGS[ACTIVE_ENV]


Config = get_config()
ENV_DIAGNOSTICS = {
    "active": ACTIVE_ENV,
    "requested": env.str("FLASK_ENV"),
    "warnings": tuple(env.warnings),
}
