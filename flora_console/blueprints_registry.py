import logging

from .extensions import csrf

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    from .blueprints.api import api_bp
    from .blueprints.conversions import conversions_bp

    # The JSON proxy is called by scripts and the POS, not by forms we render
    csrf.exempt(api_bp)

    app.register_blueprint(api_bp)
    app.register_blueprint(conversions_bp)

    logger.info("Registered blueprints: %s", ", ".join(sorted(app.blueprints)))
