"""
Production order workflow.

Starting a waiting production order draws its recipe materials from the lot
ledger on behalf of the sales order, consuming that order's reservations.
Missing material does not block the start; it is reported as a warning.
Cancelling a production order hands back its share of the holds, and once
every production order of a sales order is done or cancelled the order keeps
no holds at all.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import ConcurrencyConflictError, NotFoundError
from ..models import db, Order, ProductionOrder
from ..models.production_order import PO_CANCELLED, PO_DONE, PO_IN_PRODUCTION, PO_WAITING
from ..utils.timezone_utils import TimezoneUtils
from .lot_ledger import consume_fifo
from .order_approval import mark_in_production
from .order_workflow import check_production_transition
from .reservation_service import ReservationService

logger = logging.getLogger(__name__)


@dataclass
class ProductionTransitionResult:
    production_order: ProductionOrder
    previous_status: str
    consumptions: List[Any] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    order_status: str = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'production_order': self.production_order.to_dict(),
            'previous_status': self.previous_status,
            'order_status': self.order_status,
            'consumptions': [c.to_dict() for c in self.consumptions],
            'warnings': list(self.warnings),
        }


def _lock_production_order(production_order_id):
    production_order = (
        db.session.query(ProductionOrder)
        .filter(ProductionOrder.id == production_order_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if production_order is None:
        raise NotFoundError("ProductionOrder", production_order_id)
    return production_order


def _draw_materials(production_order, order, result):
    product = production_order.product
    for recipe in product.recipes:
        required = recipe.consumption_kg(production_order.quantity_to_produce)
        if required <= 0:
            continue
        consumption = consume_fifo(
            recipe.material_id,
            required,
            allow_partial=True,
            order_id=order.id,
            reference=production_order.number,
            reason=f"produção {production_order.number}",
            movement_type="production",
        )
        result.consumptions.append(consumption)
        if consumption.shortfall > 0:
            result.warnings.append(
                f"Material {recipe.material.name}: drew {consumption.consumed_quantity:.3f} of "
                f"{required:.3f} kg (missing {consumption.shortfall:.3f})"
            )
        for alert in consumption.alerts:
            result.warnings.append(
                f"Material {recipe.material.name}: lot switch to cost {alert.lot_cost:.4f} "
                f"vs administrative {alert.admin_cost:.4f}"
            )


def _release_item_holds(production_order, order):
    """Hand back the holds a cancelled production order would have drawn."""
    for recipe in production_order.product.recipes:
        required = recipe.consumption_kg(production_order.quantity_to_produce)
        if required > 0:
            ReservationService.release_for_material(order.id, recipe.material_id, required)


def _all_settled(order_id):
    return not (
        ProductionOrder.query.filter(
            ProductionOrder.order_id == order_id,
            ProductionOrder.status.notin_([PO_DONE, PO_CANCELLED]),
        ).count()
    )


def transition_production_order(production_order_id, new_status) -> ProductionTransitionResult:
    """Move a production order along aguardando/em_producao/parcial/concluido/cancelado."""
    try:
        production_order = _lock_production_order(production_order_id)
        check_production_transition(production_order.status, new_status)
        result = ProductionTransitionResult(production_order, production_order.status)

        order = db.session.get(Order, production_order.order_id)
        if production_order.status == PO_WAITING and new_status == PO_IN_PRODUCTION:
            _draw_materials(production_order, order, result)
            production_order.started_at = TimezoneUtils.utc_now()
            mark_in_production(order)

        if new_status == PO_DONE:
            production_order.finished_at = TimezoneUtils.utc_now()
        elif new_status == PO_CANCELLED:
            _release_item_holds(production_order, order)

        production_order.status = new_status
        if new_status in (PO_DONE, PO_CANCELLED):
            db.session.flush()
            if _all_settled(order.id):
                # nothing left to draw for this order
                ReservationService.release_for_order(order.id)
        result.order_status = order.status
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflictError(
            f"Production order {production_order_id} materials were modified concurrently"
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    for warning in result.warnings:
        logger.warning(f"PRODUCTION: {production_order.number}: {warning}")
    logger.info(f"PRODUCTION: {production_order.number} {result.previous_status} -> {new_status}")
    return result


def production_orders_for(order_id):
    return (
        ProductionOrder.query.filter_by(order_id=order_id)
        .order_by(ProductionOrder.id.asc())
        .all()
    )
