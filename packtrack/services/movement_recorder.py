"""
Movement Recorder

Append-only audit trail for every stock change. Rows are added to the caller's
session and never committed here: the stock mutation and its movement share one
transaction.
"""

import logging

from ..exceptions import ValidationError
from ..models import db, Movement
from ..models.movement import ITEM_MATERIAL, ITEM_PRODUCT, MOVEMENT_TYPES

logger = logging.getLogger(__name__)

ARITHMETIC_TOLERANCE = 1e-9


def record_movement(
    type: str,
    qty_before: float,
    qty_delta: float,
    reason: str = None,
    reference: str = None,
    material_id: int = None,
    product_id: int = None,
    lot_id: int = None,
    unit_cost: float = None,
    qty_after: float = None,
) -> Movement:
    """Add one movement row to the session.

    ``qty_after`` defaults to ``qty_before + qty_delta``; when given it must
    agree with that sum.
    """
    if type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type '{type}'", field='type')
    if (material_id is None) == (product_id is None):
        raise ValidationError("A movement references exactly one material or product")

    expected_after = float(qty_before) + float(qty_delta)
    if qty_after is None:
        qty_after = expected_after
    elif abs(float(qty_after) - expected_after) > ARITHMETIC_TOLERANCE:
        raise ValidationError(
            f"Movement arithmetic mismatch: {qty_before} + {qty_delta} != {qty_after}",
            field='qty_after',
        )

    movement = Movement(
        type=type,
        item_kind=ITEM_MATERIAL if material_id is not None else ITEM_PRODUCT,
        material_id=material_id,
        product_id=product_id,
        qty_before=float(qty_before),
        qty_delta=float(qty_delta),
        qty_after=float(qty_after),
        reason=reason,
        reference=reference,
        lot_id=lot_id,
        unit_cost=unit_cost,
    )
    db.session.add(movement)
    logger.debug(
        f"MOVEMENT: {type} {movement.item_kind}={material_id or product_id} delta={qty_delta} "
        f"({qty_before} -> {qty_after}) ref={reference}"
    )
    return movement


def movements_for(material_id: int = None, product_id: int = None, reference: str = None):
    """Movements for a material, product or document reference, oldest first."""
    query = Movement.query
    if material_id is not None:
        query = query.filter(Movement.material_id == material_id)
    if product_id is not None:
        query = query.filter(Movement.product_id == product_id)
    if reference is not None:
        query = query.filter(Movement.reference == reference)
    return query.order_by(Movement.created_at.asc(), Movement.id.asc()).all()
