"""
Stock provisioning for sales orders.

Demand is aggregated per material across all manufactured items before any
lot is looked at, so two items sharing a material are checked against the
same stock once. Nothing here mutates state.
"""

import logging
from collections import OrderedDict
from typing import Dict, Union

from ...exceptions import NotFoundError
from ...models import db, Material, Order, Product
from ..cost_reconciler import check_divergence
from ..lot_ledger import plan_fifo
from .types import MaterialReservationPlan, ProvisionResult, Shortage, ShortageKind

logger = logging.getLogger(__name__)


def resolve_order(order: Union[Order, int]) -> Order:
    if isinstance(order, Order):
        return order
    found = db.session.get(Order, order)
    if found is None:
        raise NotFoundError("Order", order)
    return found


def material_demand(order: Order) -> Dict[int, float]:
    """kg of each material needed by the order's manufactured items."""
    demand = OrderedDict()
    for item in order.items:
        product = item.product
        if product is None or product.is_resale:
            continue
        units = item.total_quantity
        for recipe in product.recipes:
            demand[recipe.material_id] = demand.get(recipe.material_id, 0.0) + recipe.consumption_kg(units)
    return demand


def resale_demand(order: Order) -> Dict[int, float]:
    demand = OrderedDict()
    for item in order.items:
        if item.product is not None and item.product.is_resale:
            demand[item.product_id] = demand.get(item.product_id, 0.0) + item.total_quantity
    return demand


def provision(order) -> ProvisionResult:
    """Dry-run the order against current lots: shortages, planned lots and cost alerts."""
    order = resolve_order(order)
    result = ProvisionResult(order_id=order.id)

    for material_id, required in material_demand(order).items():
        material = db.session.get(Material, material_id)
        plan = plan_fifo(material_id, required, order_id=order.id)

        if plan.is_satisfied:
            result.reservations.append(MaterialReservationPlan(
                material_id=material_id,
                name=material.name,
                required=required,
                lots=plan.slices,
            ))
        else:
            result.shortages.append(Shortage(
                kind=ShortageKind.MATERIAL,
                item_id=material_id,
                name=material.name,
                required=required,
                available=plan.available,
                unit=material.unit,
            ))

        alert = check_divergence(material_id)
        if alert:
            result.cost_alerts.append(alert)

    for product_id, required in resale_demand(order).items():
        product = db.session.get(Product, product_id)
        available = float(product.stock_qty or 0.0)
        if available < required:
            result.shortages.append(Shortage(
                kind=ShortageKind.RESALE_PRODUCT,
                item_id=product_id,
                name=product.name,
                required=required,
                available=available,
                unit=product.unit,
            ))

    logger.info(
        f"PROVISION: order {order.number}: {len(result.reservations)} material(s) covered, "
        f"{len(result.shortages)} shortage(s), {len(result.cost_alerts)} cost alert(s)"
    )
    return result
