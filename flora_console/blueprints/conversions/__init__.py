from flask import Blueprint

conversions_bp = Blueprint('conversions', __name__, url_prefix='/inventory/products/<int:product_id>')

# Import routes to register them with the blueprint
from . import routes  # noqa: E402,F401
