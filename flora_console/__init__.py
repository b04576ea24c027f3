import logging
import os
from typing import Any

from flask import Flask
from flask_wtf.csrf import CSRFError

from .blueprints_registry import register_blueprints
from .config import ENV_DIAGNOSTICS
from .errors import register_error_handlers
from .extensions import cache, csrf, limiter, server_session
from .logging_config import configure_logging
from .services.flora_client import init_flora_client

logger = logging.getLogger(__name__)


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    os.makedirs(app.instance_path, exist_ok=True)

    _load_base_config(app, config)
    configure_logging(app)

    csrf.init_app(app)
    _configure_cache(app)
    _configure_sessions(app)
    _configure_rate_limiter(app)

    init_flora_client(app)
    register_error_handlers(app)
    _register_csrf_handler(app)
    register_blueprints(app)
    _add_core_routes(app)

    from .management import register_commands

    register_commands(app)
    return app


def _load_base_config(app: Flask, config: dict[str, Any] | None) -> None:
    app.config.from_object("flora_console.config.Config")
    app.config.update(config or {})
    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS["warnings"]:
        logger.warning("Config: %s", warning)


def _configure_cache(app: Flask) -> None:
    cache_type = app.config.get("CACHE_TYPE", "SimpleCache")
    if cache_type == "RedisCache" and not app.config.get("CACHE_REDIS_URL"):
        logger.warning("CACHE_TYPE=RedisCache needs CACHE_REDIS_URL or REDIS_URL; using SimpleCache.")
        cache_type = "SimpleCache"
    cache.init_app(app, config={
        "CACHE_TYPE": cache_type,
        "CACHE_REDIS_URL": app.config.get("CACHE_REDIS_URL"),
        "CACHE_DEFAULT_TIMEOUT": app.config.get("CACHE_DEFAULT_TIMEOUT", 120),
    })
    logger.info("Variance reasons cached with %s", cache_type)


def _configure_sessions(app: Flask) -> None:
    if app.config.get("SESSION_TYPE") == "filesystem" and not app.config.get("SESSION_FILE_DIR"):
        app.config["SESSION_FILE_DIR"] = os.path.join(app.instance_path, "wizard_sessions")
    if app.config.get("SESSION_FILE_DIR"):
        os.makedirs(app.config["SESSION_FILE_DIR"], exist_ok=True)
    server_session.init_app(app)


def _configure_rate_limiter(app: Flask) -> None:
    limiter.init_app(app)
    if app.config.get("ENV") == "production" and app.config["RATELIMIT_STORAGE_URI"].startswith("memory://"):
        logger.warning("Rate limits are per worker process; set REDIS_URL to share them.")


def _register_csrf_handler(app: Flask) -> None:
    from flask import jsonify, request

    @app.errorhandler(CSRFError)
    def _csrf_error_handler(err: CSRFError):
        app.logger.warning("CSRF validation failed on %s: %s", request.path, err.description)
        return jsonify({"success": False, "error": "CSRF validation failed. Please refresh and try again."}), 400


def _add_core_routes(app: Flask) -> None:
    from flask import jsonify

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "environment": app.config.get("ENV_DIAGNOSTICS", {}).get("active")})
