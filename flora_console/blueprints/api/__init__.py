from flask import Blueprint

api_bp = Blueprint('api', __name__, url_prefix='/api/flora')

# Import route modules to register them with the blueprint
from . import routes  # noqa: E402,F401
from . import stock_routes  # noqa: E402,F401
