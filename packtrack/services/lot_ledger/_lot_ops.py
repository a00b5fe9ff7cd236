"""
Lot creation and FIFO consumption.

Functions here flush but never commit; the calling service owns the transaction.
The material row is loaded FOR UPDATE before any mutation, and its version
column turns a lost race into ConcurrencyConflictError at flush.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm.exc import StaleDataError

from ...exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    PackTrackError,
    ValidationError,
)
from ...models import db, Lot, Material
from ...models.lot import LOT_ACTIVE, LOT_EXHAUSTED
from ...utils.timezone_utils import TimezoneUtils
from ..movement_recorder import record_movement
from ..reservation_service import ReservationService
from ._selection import QTY_EPSILON, FifoPlan, FifoSlice, active_lots, plan_fifo

logger = logging.getLogger(__name__)


@dataclass
class ConsumptionResult:
    material_id: int
    requested: float
    consumed: List[FifoSlice] = field(default_factory=list)
    shortfall: float = 0.0
    alerts: List[Any] = field(default_factory=list)
    movements: List[Any] = field(default_factory=list)

    @property
    def consumed_quantity(self) -> float:
        return sum(s.quantity for s in self.consumed)

    @property
    def total_cost(self) -> float:
        return sum(s.quantity * s.unit_cost for s in self.consumed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "requested": self.requested,
            "consumed": [s.to_dict() for s in self.consumed],
            "total_cost": self.total_cost,
            "shortfall": self.shortfall,
            "alerts": [a.to_dict() for a in self.alerts],
        }


@dataclass
class ReceiptResult:
    lot_id: int
    material_id: int
    quantity: float
    unit_cost: float
    alert: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_id": self.lot_id,
            "material_id": self.material_id,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "alert": self.alert.to_dict() if self.alert else None,
        }


def _positive(value, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if number <= 0:
        raise ValidationError(f"{field_name} must be greater than zero", field=field_name)
    return number


def lock_material(material_id: int) -> Material:
    """Load the material row FOR UPDATE, refreshing any stale identity-map copy."""
    material = (
        db.session.query(Material)
        .filter(Material.id == material_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if material is None:
        raise NotFoundError("Material", material_id)
    return material


def _flush():
    try:
        db.session.flush()
    except StaleDataError as exc:
        raise ConcurrencyConflictError("Material was modified by a concurrent operation") from exc


def create_lot(
    material_id: int,
    quantity: float,
    unit_cost: float,
    source_ref: str = None,
    created_at: datetime = None,
) -> Lot:
    """Append an active lot, raise the material's stock and log an entry movement."""
    quantity = _positive(quantity, "quantity")
    unit_cost = _positive(unit_cost, "unit_cost")

    material = lock_material(material_id)
    lot = Lot(
        material_id=material.id,
        original_quantity=quantity,
        quantity_remaining=quantity,
        unit_cost=unit_cost,
        status=LOT_ACTIVE,
        source_ref=source_ref,
        created_at=created_at or TimezoneUtils.utc_now(),
    )
    db.session.add(lot)
    _flush()

    qty_before = float(material.stock_qty or 0.0)
    material.stock_qty = qty_before + quantity
    record_movement(
        "entry",
        qty_before=qty_before,
        qty_delta=quantity,
        reason="compra",
        reference=source_ref,
        material_id=material.id,
        lot_id=lot.id,
        unit_cost=unit_cost,
    )
    _flush()

    logger.info(f"LOT: created lot {lot.id} for material {material.id}: {quantity} @ {unit_cost}")
    return lot


def peek_fifo(material_id: int, quantity: float, order_id: int = None) -> FifoPlan:
    """Read-only FIFO plan; never mutates and never raises on shortage."""
    quantity = _positive(quantity, "quantity")
    if db.session.get(Material, material_id) is None:
        raise NotFoundError("Material", material_id)
    return plan_fifo(material_id, quantity, order_id=order_id)


def _lot_switch_alert(material: Material, exhausted: List[Lot]):
    """Alert when a lot ran dry and the next one in line is priced off the admin cost."""
    from ..cost_reconciler import divergence_between

    if not exhausted:
        return None
    upcoming = active_lots(material.id)
    if not upcoming:
        return None
    alert = divergence_between(material, upcoming[0].unit_cost, upcoming[0].id)
    if alert:
        alert.previous_lot_id = exhausted[-1].id
        alert.previous_lot_cost = float(exhausted[-1].unit_cost)
        logger.warning(
            f"LOT SWITCH: material {material.id} moved from lot {exhausted[-1].id} "
            f"@ {exhausted[-1].unit_cost} to lot {upcoming[0].id} @ {upcoming[0].unit_cost} "
            f"(admin cost {material.admin_unit_cost})"
        )
    return alert


def consume_fifo(
    material_id: int,
    quantity: float,
    *,
    allow_partial: bool = False,
    order_id: int = None,
    reference: str = None,
    reason: str = None,
    movement_type: str = "exit",
) -> ConsumptionResult:
    """Draw ``quantity`` from the material's lots, oldest first.

    With ``allow_partial=False`` a shortfall raises InsufficientStockError and
    nothing is touched. With ``allow_partial=True`` whatever is available is
    drawn and the shortfall is returned.

    Drawing on behalf of ``order_id`` may use that order's own reservations.
    The order's holds on the material shrink by the quantity drawn, whichever
    lots FIFO actually took it from.
    """
    quantity = _positive(quantity, "quantity")
    try:
        material = lock_material(material_id)
        lots = {lot.id: lot for lot in active_lots(material_id, for_update=True)}
        plan = plan_fifo(material_id, quantity, order_id=order_id)

        if not plan.is_satisfied and not allow_partial:
            raise InsufficientStockError(material_id, quantity, plan.available)

        result = ConsumptionResult(material_id=material_id, requested=quantity, shortfall=plan.shortfall)
        exhausted = []

        for slice_ in plan.slices:
            lot = lots[slice_.lot_id]
            lot.quantity_remaining = float(lot.quantity_remaining) - slice_.quantity
            if lot.quantity_remaining <= QTY_EPSILON:
                lot.quantity_remaining = 0.0
                lot.status = LOT_EXHAUSTED
                exhausted.append(lot)

            qty_before = float(material.stock_qty or 0.0)
            qty_after = qty_before - slice_.quantity
            if qty_after < -QTY_EPSILON:
                logger.error(
                    f"FIFO: material {material.id} stock went negative ({qty_after}) drawing lot {lot.id}; "
                    f"stock_qty is out of sync with its lots"
                )
            material.stock_qty = qty_after
            result.movements.append(record_movement(
                movement_type,
                qty_before=qty_before,
                qty_delta=qty_after - qty_before,
                reason=reason or "consumo PEPS",
                reference=reference,
                material_id=material.id,
                lot_id=lot.id,
                unit_cost=slice_.unit_cost,
            ))
            result.consumed.append(slice_)

        if order_id is not None and result.consumed:
            ReservationService.consume_for_material(order_id, material_id, result.consumed_quantity)

        _flush()

        alert = _lot_switch_alert(material, exhausted)
        if alert:
            result.alerts.append(alert)
    except PackTrackError:
        raise
    except Exception:
        logger.exception(f"FIFO: consumption failed for material {material_id}")
        raise

    if result.shortfall > 0:
        logger.warning(
            f"FIFO: partial draw for material {material_id}: {result.consumed_quantity} of {quantity}, "
            f"missing {result.shortfall}"
        )
    else:
        logger.info(f"FIFO: drew {quantity} of material {material_id} from {len(result.consumed)} lot(s)")
    return result


def receive_purchase(material_id: int, quantity: float, unit_cost: float, reference: str = None) -> ReceiptResult:
    """Book a purchase receipt as a new lot and report cost divergence. Commits."""
    from ..cost_reconciler import divergence_between

    try:
        lot = create_lot(material_id, quantity, unit_cost, source_ref=reference)
        alert = divergence_between(lot.material, lot.unit_cost, lot.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if alert:
        logger.warning(
            f"COST DIVERGENCE: receipt {reference} for material {material_id} at {unit_cost} "
            f"vs admin cost {alert.admin_cost} ({alert.pct_diff:.2%})"
        )
    return ReceiptResult(lot.id, lot.material_id, lot.original_quantity, lot.unit_cost, alert)
