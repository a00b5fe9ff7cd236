"""Cost reconciliation between administrative material costs and lot costs.

Synopsis:
A material carries one administrative unit cost used to price recipes. Lots
carry the cost actually paid. When the two drift apart by more than the
configured threshold an alert is raised; accepting a new administrative cost
rewrites every recipe line that uses the material.

Glossary:
- Administrative cost: ``Material.admin_unit_cost``, price per kg.
- Lot cost: ``Lot.unit_cost`` recorded at purchase receipt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import ConcurrencyConflictError, NotFoundError, PackTrackError, ValidationError
from ..models import db, Material, MaterialCostHistory, Recipe
from .lot_ledger._selection import active_lots

logger = logging.getLogger(__name__)

DEFAULT_DIVERGENCE_THRESHOLD = 0.005
DEFAULT_RECIPE_EPSILON = 0.0001


@dataclass
class CostDivergenceAlert:
    material_id: int
    admin_cost: float
    lot_cost: float
    pct_diff: float
    lot_id: Optional[int] = None
    previous_lot_id: Optional[int] = None
    previous_lot_cost: Optional[float] = None
    material_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "material_name": self.material_name,
            "admin_cost": self.admin_cost,
            "lot_cost": self.lot_cost,
            "pct_diff": round(self.pct_diff, 6),
            "lot_id": self.lot_id,
            "previous_lot_id": self.previous_lot_id,
            "previous_lot_cost": self.previous_lot_cost,
        }


@dataclass
class CostUpdateResult:
    material_id: int
    previous_cost: float
    new_cost: float
    recipes_updated: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "previous_cost": self.previous_cost,
            "new_cost": self.new_cost,
            "recipes_updated": self.recipes_updated,
        }


def _config_value(key: str, default: float) -> float:
    if has_app_context():
        return float(current_app.config.get(key, default))
    return default


def divergence_between(material: Material, lot_cost: float, lot_id: Optional[int] = None) -> Optional[CostDivergenceAlert]:
    """Alert when |lot - admin| / admin exceeds the threshold; never for an unpriced material."""
    admin_cost = float(material.admin_unit_cost or 0.0)
    if admin_cost <= 0 or lot_cost is None:
        return None
    pct_diff = abs(float(lot_cost) - admin_cost) / admin_cost
    if pct_diff <= _config_value("COST_DIVERGENCE_THRESHOLD", DEFAULT_DIVERGENCE_THRESHOLD):
        return None
    return CostDivergenceAlert(
        material_id=material.id,
        material_name=material.name,
        admin_cost=admin_cost,
        lot_cost=float(lot_cost),
        pct_diff=pct_diff,
        lot_id=lot_id,
    )


def check_divergence(material_id: int, lot_cost: float = None) -> Optional[CostDivergenceAlert]:
    """Compare ``lot_cost`` (default: oldest active lot) against the administrative cost."""
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError("Material", material_id)

    lot_id = None
    if lot_cost is None:
        lots = active_lots(material_id)
        if not lots:
            return None
        lot_cost = lots[0].unit_cost
        lot_id = lots[0].id

    return divergence_between(material, lot_cost, lot_id)


def recalculate_recipes(material_id: int, new_cost: float) -> int:
    """Reprice the recipe lines of one material; lines within epsilon are left alone.

    Returns the number of rows written. Does not commit.
    """
    epsilon = _config_value("RECIPE_COST_EPSILON", DEFAULT_RECIPE_EPSILON)
    new_line_cost = Recipe.consumption_per_unit_g / 1000.0 * float(new_cost)

    updated = (
        Recipe.query.filter(
            Recipe.material_id == material_id,
            func.abs(Recipe.cost_per_unit - new_line_cost) >= epsilon,
        )
        .update({Recipe.cost_per_unit: new_line_cost}, synchronize_session="fetch")
    )
    logger.info(f"COST: repriced {updated} recipe line(s) for material {material_id} at {new_cost:.4f}")
    return updated


def apply_administrative_cost(material_id: int, new_cost: float, reason: str = None) -> CostUpdateResult:
    """Set the administrative cost, log history and reprice recipes in one transaction."""
    try:
        new_cost = float(new_cost)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid cost {new_cost!r}", field="new_cost")
    if new_cost <= 0:
        raise ValidationError("Administrative cost must be greater than zero", field="new_cost")

    try:
        material = (
            db.session.query(Material)
            .filter(Material.id == material_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if material is None:
            raise NotFoundError("Material", material_id)

        previous_cost = float(material.admin_unit_cost or 0.0)
        material.admin_unit_cost = new_cost
        db.session.add(MaterialCostHistory(
            material_id=material.id,
            previous_cost=previous_cost,
            new_cost=new_cost,
            reason=reason,
        ))
        db.session.flush()

        updated = recalculate_recipes(material.id, new_cost)
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflictError(f"Material {material_id} was modified concurrently") from exc
    except PackTrackError:
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        logger.exception(f"COST: failed to apply administrative cost to material {material_id}")
        raise

    logger.info(f"COST: material {material_id} administrative cost {previous_cost:.4f} -> {new_cost:.4f} ({reason})")
    return CostUpdateResult(material_id, previous_cost, new_cost, updated)


def pending_divergences() -> List[CostDivergenceAlert]:
    """Alerts for every material whose oldest active lot diverges from its administrative cost."""
    alerts = []
    for material in Material.query.order_by(Material.id).all():
        alert = check_divergence(material.id)
        if alert:
            alerts.append(alert)
    return alerts
