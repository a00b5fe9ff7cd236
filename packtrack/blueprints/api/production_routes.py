from flask import Blueprint

from ...exceptions import ValidationError
from ...services import transition_production_order
from ...utils.api_responses import APIResponse

production_api_bp = Blueprint('production_api', __name__, url_prefix='/production-orders')


@production_api_bp.route('/<int:production_order_id>/transition', methods=['POST'])
def transition(production_order_id):
    data = APIResponse.handle_request_content()
    new_status = (data.get('status') or '').strip()
    if not new_status:
        raise ValidationError("status is required", field='status')
    result = transition_production_order(production_order_id, new_status)
    return APIResponse.success(result.to_dict(), message=f"Production order moved to {new_status}")
