from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

RESERVATION_ACTIVE = 'active'
RESERVATION_CONSUMED = 'consumed'
RESERVATION_RELEASED = 'released'


class LotReservation(db.Model):
    """Quantity of a lot held for an approved order until production draws it."""
    __tablename__ = 'lot_reservation'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sales_order.id'), nullable=False)
    lot_id = db.Column(db.Integer, db.ForeignKey('lot.id'), nullable=False)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=False)

    quantity = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=RESERVATION_ACTIVE)

    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    released_at = db.Column(db.DateTime, nullable=True)
    consumed_at = db.Column(db.DateTime, nullable=True)

    lot = db.relationship('Lot')

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='check_reservation_quantity_non_negative'),
        db.Index('idx_reservation_order_status', 'order_id', 'status'),
        db.Index('idx_reservation_lot_status', 'lot_id', 'status'),
        db.Index('idx_reservation_material_status', 'material_id', 'status'),
    )

    def mark_released(self):
        self.status = RESERVATION_RELEASED
        self.released_at = TimezoneUtils.utc_now()

    def mark_consumed(self):
        self.status = RESERVATION_CONSUMED
        self.consumed_at = TimezoneUtils.utc_now()

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'lot_id': self.lot_id,
            'material_id': self.material_id,
            'quantity': self.quantity,
            'status': self.status,
        }
