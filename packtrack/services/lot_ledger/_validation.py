import logging

from sqlalchemy import func

from ...models import db, Lot, Material
from ...models.lot import LOT_ACTIVE

logger = logging.getLogger(__name__)

SYNC_TOLERANCE = 0.001


def validate_material_lot_sync(material_id):
    """Validate that material stock matches the sum of its active lots.

    Returns (is_valid, error_message, stock_qty, lot_total).
    """
    material = db.session.get(Material, material_id)
    if not material:
        return False, "Material not found", 0, 0

    lot_total = (
        db.session.query(func.coalesce(func.sum(Lot.quantity_remaining), 0.0))
        .filter(Lot.material_id == material_id, Lot.status == LOT_ACTIVE)
        .scalar()
    )
    lot_total = float(lot_total or 0.0)
    stock_qty = float(material.stock_qty or 0.0)

    if abs(stock_qty - lot_total) >= SYNC_TOLERANCE:
        logger.error(f"LOT SYNC MISMATCH for material {material_id} ({material.name}):")
        logger.error(f"  Material stock: {stock_qty}")
        logger.error(f"  Lot total: {lot_total}")
        logger.error(f"  Difference: {abs(stock_qty - lot_total)}")
        error_msg = f"Lot sync error: stock={stock_qty}, lot_total={lot_total}, diff={abs(stock_qty - lot_total)}"
        return False, error_msg, stock_qty, lot_total

    return True, None, stock_qty, lot_total


def find_lot_sync_violations():
    """Run the sync check over every material; returns a list of violation dicts."""
    violations = []
    for (material_id,) in db.session.query(Material.id).order_by(Material.id).all():
        is_valid, error, stock_qty, lot_total = validate_material_lot_sync(material_id)
        if not is_valid:
            violations.append({
                'material_id': material_id,
                'stock_qty': stock_qty,
                'lot_total': lot_total,
                'error': error,
            })
    return violations
