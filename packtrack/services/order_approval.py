"""
Order Approval Pipeline

Drives a sales order through its status table. Approval is the transition with
side effects: material reservations, resale stock deduction and production
order creation all commit in one transaction, guarded by the order row lock, a
unique transition claim and a process-local in-flight set.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PackTrackError,
)
from ..models import db, Order, OrderTransitionClaim, Product, ProductionOrder
from ..models.order import ORDER_KIND_CONFIRMED, ORDER_KIND_QUOTE
from ..models.production_order import PO_CANCELLED, PO_DONE, PO_WAITING
from ..utils.timezone_utils import TimezoneUtils
from .lot_ledger import lock_material, plan_fifo
from .movement_recorder import record_movement
from .order_workflow import ORDER_ABORT, OrderStatus, check_order_transition
from .provisioning import Shortage, ShortageKind, material_demand
from .reservation_service import ReservationService

logger = logging.getLogger(__name__)

APPROVE_TRANSITION = "approve"
RESALE_POLICY_WARN = "warn"
RESALE_POLICY_STRICT = "strict"

_in_flight: set = set()
_in_flight_lock = threading.Lock()


@dataclass
class ApprovalResult:
    order_id: int
    already_approved: bool = False
    movements: List[Any] = field(default_factory=list)
    production_orders: List[ProductionOrder] = field(default_factory=list)
    reservations: List[Any] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'already_approved': self.already_approved,
            'movements': [m.to_dict() for m in self.movements],
            'production_orders': [po.to_dict() for po in self.production_orders],
            'reservations': [r.to_dict() for r in self.reservations],
            'warnings': list(self.warnings),
        }


@contextmanager
def _in_flight_guard(order_id):
    with _in_flight_lock:
        if order_id in _in_flight:
            raise ConcurrencyConflictError(f"Order {order_id} is already being approved")
        _in_flight.add(order_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(order_id)


def _lock_order(order_id) -> Order:
    order = (
        db.session.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def _order_id(order) -> int:
    return order.id if isinstance(order, Order) else int(order)


def approve(order, accept_shortages: bool = False) -> ApprovalResult:
    """Approve a pending order. A second call on an approved order is a no-op."""
    order_id = _order_id(order)
    with _in_flight_guard(order_id):
        try:
            result = _approve_locked(order_id, accept_shortages)
            db.session.commit()
        except (IntegrityError, StaleDataError) as exc:
            db.session.rollback()
            logger.warning(f"APPROVAL: concurrent approval detected for order {order_id}: {exc}")
            raise ConcurrencyConflictError(f"Order {order_id} was approved concurrently") from exc
        except Exception:
            db.session.rollback()
            raise

    if not result.already_approved:
        logger.info(
            f"APPROVAL: order {order_id} approved: {len(result.reservations)} reservation(s), "
            f"{len(result.production_orders)} production order(s), {len(result.warnings)} warning(s)"
        )
    return result


def _approve_locked(order_id, accept_shortages) -> ApprovalResult:
    order = _lock_order(order_id)
    result = ApprovalResult(order_id=order.id)

    if order.status in ORDER_ABORT:
        raise InvalidTransitionError(order.status, OrderStatus.APPROVED.value)
    if order.status != OrderStatus.PENDING.value:
        result.already_approved = True
        return result

    db.session.add(OrderTransitionClaim(order_id=order.id, transition=APPROVE_TRANSITION))
    db.session.flush()

    _reserve_materials(order, accept_shortages, result)
    _deduct_resale_items(order, result)
    _create_production_orders(order, result)

    order.status = OrderStatus.APPROVED.value
    order.approved_at = TimezoneUtils.utc_now()
    if order.kind == ORDER_KIND_QUOTE:
        order.kind = ORDER_KIND_CONFIRMED
    db.session.flush()
    return result


def _reserve_materials(order, accept_shortages, result):
    plans = []
    shortages = []
    for material_id, required in material_demand(order).items():
        material = lock_material(material_id)
        plan = plan_fifo(material_id, required, order_id=order.id, for_update=True)
        plans.append((material, plan))
        if not plan.is_satisfied:
            shortages.append(Shortage(
                kind=ShortageKind.MATERIAL,
                item_id=material_id,
                name=material.name,
                required=required,
                available=plan.available,
                unit=material.unit,
            ))

    if shortages and not accept_shortages:
        first = shortages[0]
        raise InsufficientStockError(
            first.item_id, first.required, first.available,
            shortages=[s.to_dict() for s in shortages],
        )

    for material, plan in plans:
        result.reservations.extend(ReservationService.reserve_slices(order.id, material.id, plan.slices))
    for shortage in shortages:
        result.warnings.append(
            f"Material {shortage.name}: reserved {shortage.available:.3f} of {shortage.required:.3f} "
            f"{shortage.unit} (missing {shortage.missing:.3f})"
        )
    db.session.flush()


def _deduct_resale(order, item):
    product = (
        db.session.query(Product)
        .filter(Product.id == item.product_id)
        .with_for_update()
        .populate_existing()
        .one()
    )
    quantity = item.total_quantity
    available = float(product.stock_qty or 0.0)
    if available < quantity:
        raise InsufficientStockError(None, quantity, available, product_id=product.id)

    product.stock_qty = available - quantity
    movement = record_movement(
        "exit",
        qty_before=available,
        qty_delta=-quantity,
        reason="venda",
        reference=order.number,
        product_id=product.id,
    )
    db.session.flush()
    return movement


def _deduct_resale_items(order, result):
    policy = current_app.config.get("APPROVAL_RESALE_FAILURE_POLICY", RESALE_POLICY_WARN)
    for item in order.items:
        if item.product is None or not item.product.is_resale:
            continue
        if policy == RESALE_POLICY_STRICT:
            result.movements.append(_deduct_resale(order, item))
            continue
        try:
            with db.session.begin_nested():
                movement = _deduct_resale(order, item)
            result.movements.append(movement)
        except (PackTrackError, SQLAlchemyError) as exc:
            logger.warning(f"APPROVAL: resale deduction failed for order {order.number} item {item.id}: {exc}")
            result.warnings.append(f"Resale item {item.product.name}: stock not deducted ({exc})")


def _scheduled_date(order, product):
    lead_time = order.lead_time_days if order.lead_time_days is not None else product.lead_time_days
    if lead_time is not None and order.order_date is not None:
        return TimezoneUtils.add_days(order.order_date, lead_time)
    return order.expected_delivery_date


def _create_production_orders(order, result):
    prefix = current_app.config.get("PRODUCTION_ORDER_PREFIX", "OP")
    for item in order.items:
        if item.product is None or item.product.is_resale:
            continue
        existing = ProductionOrder.query.filter_by(order_id=order.id, order_item_id=item.id).first()
        if existing is not None:
            continue

        production_order = ProductionOrder(
            order_id=order.id,
            order_item_id=item.id,
            product_id=item.product_id,
            quantity_to_produce=item.total_quantity,
            piece_count=item.piece_count,
            piece_length_mm=item.piece_length_mm,
            status=PO_WAITING,
            scheduled_date=_scheduled_date(order, item.product),
        )
        db.session.add(production_order)
        db.session.flush()
        production_order.number = f"{prefix}-{production_order.id:04d}"
        result.production_orders.append(production_order)
    db.session.flush()


def transition(order, new_status: str) -> Order:
    """Move an order along its status table (everything except approval)."""
    order_id = _order_id(order)
    if new_status == OrderStatus.APPROVED.value:
        current = order.status if isinstance(order, Order) else OrderStatus.PENDING.value
        raise InvalidTransitionError(current, new_status)

    try:
        locked = _lock_order(order_id)
        check_order_transition(locked.status, new_status)

        if new_status == OrderStatus.FINISHED.value:
            pending = (
                ProductionOrder.query.filter(
                    ProductionOrder.order_id == locked.id,
                    ProductionOrder.status.notin_([PO_DONE, PO_CANCELLED]),
                ).count()
            )
            if pending:
                raise InvalidTransitionError(locked.status, new_status)
            ReservationService.release_for_order(locked.id)

        if new_status in ORDER_ABORT:
            ReservationService.release_for_order(locked.id)
            waiting = ProductionOrder.query.filter_by(order_id=locked.id, status=PO_WAITING).all()
            for production_order in waiting:
                production_order.status = PO_CANCELLED

        previous = locked.status
        locked.status = new_status
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflictError(f"Order {order_id} was modified concurrently") from exc
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"ORDER: {locked.number} {previous} -> {new_status}")
    return locked


def mark_in_production(order: Order) -> bool:
    """aprovado -> producao when the first production order starts. Caller commits."""
    if order.status == OrderStatus.APPROVED.value:
        check_order_transition(order.status, OrderStatus.IN_PRODUCTION.value)
        order.status = OrderStatus.IN_PRODUCTION.value
        logger.info(f"ORDER: {order.number} aprovado -> producao (production started)")
        return True
    return False
