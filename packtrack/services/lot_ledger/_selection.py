"""
FIFO selection shared by peek (dry run) and consume (commit).

Both paths build the same plan from the same inputs, so a dry run equals the
commit when nothing changed in between.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func

from ...models import db, Lot, LotReservation
from ...models.lot import LOT_ACTIVE
from ...models.lot_reservation import RESERVATION_ACTIVE

QTY_EPSILON = 1e-9


@dataclass
class FifoSlice:
    lot_id: int
    quantity: float
    unit_cost: float
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_id": self.lot_id,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class FifoPlan:
    material_id: int
    requested: float
    slices: List[FifoSlice] = field(default_factory=list)
    shortfall: float = 0.0

    @property
    def planned_quantity(self) -> float:
        return sum(s.quantity for s in self.slices)

    @property
    def available(self) -> float:
        return self.planned_quantity

    @property
    def is_satisfied(self) -> bool:
        return self.shortfall <= QTY_EPSILON

    @property
    def total_cost(self) -> float:
        return sum(s.quantity * s.unit_cost for s in self.slices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "requested": self.requested,
            "available": self.available,
            "shortfall": self.shortfall,
            "slices": [s.to_dict() for s in self.slices],
            "total_cost": self.total_cost,
        }


def active_lots(material_id: int, for_update: bool = False) -> List[Lot]:
    query = (
        Lot.query.filter(
            Lot.material_id == material_id,
            Lot.status == LOT_ACTIVE,
            Lot.quantity_remaining > 0,
        )
        .order_by(Lot.created_at.asc(), Lot.id.asc())
    )
    if for_update:
        query = query.with_for_update()
    return query.all()


def reserved_by_others(material_id: int, order_id: Optional[int] = None) -> Dict[int, float]:
    """Per-lot quantity held by active reservations of orders other than ``order_id``."""
    query = (
        db.session.query(LotReservation.lot_id, func.coalesce(func.sum(LotReservation.quantity), 0.0))
        .filter(
            LotReservation.material_id == material_id,
            LotReservation.status == RESERVATION_ACTIVE,
        )
    )
    if order_id is not None:
        query = query.filter(LotReservation.order_id != order_id)
    held = defaultdict(float)
    for lot_id, qty in query.group_by(LotReservation.lot_id).all():
        held[lot_id] = float(qty or 0.0)
    return held


def select_fifo(material_id: int, quantity: float, lots: Iterable[Lot], held: Dict[int, float]) -> FifoPlan:
    """Walk lots oldest first, drawing what each can spare after foreign holds."""
    plan = FifoPlan(material_id=material_id, requested=float(quantity))
    remaining = float(quantity)

    for lot in lots:
        if remaining <= QTY_EPSILON:
            break
        spare = float(lot.quantity_remaining) - held.get(lot.id, 0.0)
        if spare <= QTY_EPSILON:
            continue
        take = min(spare, remaining)
        plan.slices.append(FifoSlice(lot.id, take, float(lot.unit_cost), lot.created_at))
        remaining -= take

    plan.shortfall = remaining if remaining > QTY_EPSILON else 0.0
    return plan


def plan_fifo(material_id: int, quantity: float, order_id: Optional[int] = None, for_update: bool = False) -> FifoPlan:
    lots = active_lots(material_id, for_update=for_update)
    held = reserved_by_others(material_id, order_id)
    return select_fifo(material_id, quantity, lots, held)
