from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

MOVEMENT_TYPES = ('entry', 'exit', 'production', 'adjustment')
ITEM_MATERIAL = 'material'
ITEM_PRODUCT = 'product'


class Movement(db.Model):
    """Append-only audit row for every stock change (materials and resale products)."""
    __tablename__ = 'movement'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    item_kind = db.Column(db.String(16), nullable=False)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=True, index=True)

    qty_before = db.Column(db.Float, nullable=False)
    qty_delta = db.Column(db.Float, nullable=False)
    qty_after = db.Column(db.Float, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    # Free-text document pointer: order number, invoice, production order
    reference = db.Column(db.String(128), nullable=True, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey('lot.id'), nullable=True)
    unit_cost = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False, index=True)

    __table_args__ = (
        db.CheckConstraint(
            "type IN ('entry', 'exit', 'production', 'adjustment')", name='check_movement_type'
        ),
        db.CheckConstraint(
            "(item_kind = 'material' AND material_id IS NOT NULL AND product_id IS NULL) OR "
            "(item_kind = 'product' AND product_id IS NOT NULL AND material_id IS NULL)",
            name='check_movement_single_item',
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'item_kind': self.item_kind,
            'material_id': self.material_id,
            'product_id': self.product_id,
            'qty_before': self.qty_before,
            'qty_delta': self.qty_delta,
            'qty_after': self.qty_after,
            'reason': self.reason,
            'reference': self.reference,
            'lot_id': self.lot_id,
            'unit_cost': self.unit_cost,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Movement {self.id} | {self.type} {self.item_kind}: {self.qty_delta}>'
