from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

LOT_ACTIVE = 'active'
LOT_EXHAUSTED = 'exhausted'


class Lot(db.Model):
    """
    A purchase receipt of a material. FIFO order is created_at then id.
    Only quantity_remaining mutates, and only downwards.
    """
    __tablename__ = 'lot'

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=False)

    original_quantity = db.Column(db.Float, nullable=False)
    quantity_remaining = db.Column(db.Float, nullable=False)
    unit_cost = db.Column(db.Float, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=LOT_ACTIVE)
    source_ref = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    material = db.relationship('Material', back_populates='lots')

    __table_args__ = (
        db.CheckConstraint('quantity_remaining >= 0', name='check_lot_remaining_non_negative'),
        db.CheckConstraint('original_quantity > 0', name='check_lot_original_positive'),
        db.CheckConstraint('unit_cost > 0', name='check_lot_unit_cost_positive'),
        db.CheckConstraint('quantity_remaining <= original_quantity', name='check_lot_remaining_not_exceeds_original'),
        db.CheckConstraint("status IN ('active', 'exhausted')", name='check_lot_status'),
        db.Index('idx_lot_material_fifo', 'material_id', 'status', 'created_at', 'id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'material_id': self.material_id,
            'original_quantity': self.original_quantity,
            'quantity_remaining': self.quantity_remaining,
            'unit_cost': self.unit_cost,
            'status': self.status,
            'source_ref': self.source_ref,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Lot {self.id}: {self.quantity_remaining}/{self.original_quantity} @ {self.unit_cost}>'
