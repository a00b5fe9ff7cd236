import logging

from flask import Blueprint

from ...exceptions import NotFoundError, PackTrackError, ValidationError
from ...extensions import db
from ...utils.api_responses import APIResponse

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api/v1')

# Import all route modules to register them
from .order_routes import order_api_bp
from .material_routes import material_api_bp
from .production_routes import production_api_bp
from .stock_routes import stock_api_bp

api_bp.register_blueprint(order_api_bp)
api_bp.register_blueprint(material_api_bp)
api_bp.register_blueprint(production_api_bp)
api_bp.register_blueprint(stock_api_bp)


@api_bp.errorhandler(PackTrackError)
def handle_packtrack_error(error):
    db.session.rollback()
    if isinstance(error, ValidationError):
        status_code = 422
    elif isinstance(error, NotFoundError):
        status_code = 404
    else:
        status_code = 409
    logger.info(f"API error {error.code}: {error.message}")
    return APIResponse.error(error.message, errors=error.to_dict(), status_code=status_code)
