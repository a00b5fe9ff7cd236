from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

PO_WAITING = 'aguardando'
PO_IN_PRODUCTION = 'em_producao'
PO_PARTIAL = 'parcial'
PO_DONE = 'concluido'
PO_CANCELLED = 'cancelado'


class ProductionOrder(db.Model):
    """One per manufactured order item; (order_id, order_item_id) is unique."""
    __tablename__ = 'production_order'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(32), nullable=True, unique=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sales_order.id'), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey('sales_order_item.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)

    quantity_to_produce = db.Column(db.Float, nullable=False)
    piece_count = db.Column(db.Integer, nullable=True)
    piece_length_mm = db.Column(db.Float, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PO_WAITING)
    scheduled_date = db.Column(db.Date, nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    finished_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    order = db.relationship('Order')
    order_item = db.relationship('OrderItem')
    product = db.relationship('Product')

    __table_args__ = (
        db.UniqueConstraint('order_id', 'order_item_id', name='uq_production_order_item'),
        db.CheckConstraint(
            "status IN ('aguardando', 'em_producao', 'parcial', 'concluido', 'cancelado')",
            name='check_production_order_status',
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'order_id': self.order_id,
            'order_item_id': self.order_item_id,
            'product_id': self.product_id,
            'quantity_to_produce': self.quantity_to_produce,
            'piece_count': self.piece_count,
            'piece_length_mm': self.piece_length_mm,
            'status': self.status,
            'scheduled_date': self.scheduled_date.isoformat() if self.scheduled_date else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }

    def __repr__(self):
        return f'<ProductionOrder {self.number} [{self.status}]>'
