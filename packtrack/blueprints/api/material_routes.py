from flask import Blueprint, request

from ...exceptions import NotFoundError, ValidationError
from ...models import db, Lot, Material
from ...models.lot import LOT_ACTIVE
from ...services import apply_administrative_cost, check_divergence, receive_purchase
from ...utils.api_responses import APIResponse

material_api_bp = Blueprint('material_api', __name__, url_prefix='/materials')


def _required_number(data, key):
    value = data.get(key)
    if value in (None, ''):
        raise ValidationError(f"{key} is required", field=key)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number", field=key)


@material_api_bp.route('/<int:material_id>/receipts', methods=['POST'])
def create_receipt(material_id):
    """Book a purchase receipt as a new lot"""
    data = APIResponse.handle_request_content()
    result = receive_purchase(
        material_id,
        _required_number(data, 'quantity'),
        _required_number(data, 'unit_cost'),
        reference=data.get('reference'),
    )
    message = "Lot created with cost divergence" if result.alert else "Lot created"
    return APIResponse.success(result.to_dict(), message=message, status_code=201)


@material_api_bp.route('/<int:material_id>/cost', methods=['POST'])
def update_cost(material_id):
    data = APIResponse.handle_request_content()
    result = apply_administrative_cost(material_id, _required_number(data, 'cost'), reason=data.get('reason'))
    return APIResponse.success(result.to_dict(), message="Administrative cost updated")


@material_api_bp.route('/<int:material_id>/lots', methods=['GET'])
def list_lots(material_id):
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError("Material", material_id)

    query = Lot.query.filter(Lot.material_id == material_id)
    if request.args.get('include_exhausted', 'false').lower() not in ('1', 'true', 'yes'):
        query = query.filter(Lot.status == LOT_ACTIVE)
    lots = query.order_by(Lot.created_at.asc(), Lot.id.asc()).all()

    return APIResponse.success({
        'material': material.to_dict(),
        'lots': [lot.to_dict() for lot in lots],
    })


@material_api_bp.route('/<int:material_id>/divergence', methods=['GET'])
def get_divergence(material_id):
    lot_cost = request.args.get('lot_cost', type=float)
    alert = check_divergence(material_id, lot_cost=lot_cost)
    return APIResponse.success(
        alert.to_dict() if alert else None,
        message="Cost divergence detected" if alert else "No divergence",
    )
