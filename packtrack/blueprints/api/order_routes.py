from flask import Blueprint

from ...exceptions import ValidationError
from ...services import approve, provision, transition
from ...services.provisioning import resolve_order
from ...utils.api_responses import APIResponse

order_api_bp = Blueprint('order_api', __name__, url_prefix='/orders')


@order_api_bp.route('/<int:order_id>/provision', methods=['POST'])
def provision_order(order_id):
    """Dry-run stock check for an order"""
    result = provision(order_id)
    message = "Order can be fulfilled" if result.fully_satisfiable else "Order has shortages"
    return APIResponse.success(result.to_dict(), message=message)


@order_api_bp.route('/<int:order_id>/approve', methods=['POST'])
def approve_order(order_id):
    data = APIResponse.handle_request_content()
    accept_shortages = str(data.get('accept_shortages', False)).lower() in ('1', 'true', 'yes', 'on')
    result = approve(order_id, accept_shortages=accept_shortages)
    message = "Order already approved" if result.already_approved else "Order approved"
    return APIResponse.success(result.to_dict(), message=message)


@order_api_bp.route('/<int:order_id>/transition', methods=['POST'])
def transition_order(order_id):
    data = APIResponse.handle_request_content()
    new_status = (data.get('status') or '').strip()
    if not new_status:
        raise ValidationError("status is required", field='status')
    order = transition(resolve_order(order_id), new_status)
    return APIResponse.success(order.to_dict(), message=f"Order moved to {new_status}")
