from dataclasses import dataclass
from typing import Union

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

ORDER_KIND_QUOTE = 'orcamento'
ORDER_KIND_CONFIRMED = 'pedido_confirmado'


@dataclass(frozen=True)
class SimpleQuantity:
    qty: float

    @property
    def total(self) -> float:
        return float(self.qty)


@dataclass(frozen=True)
class CompositeQuantity:
    """Cut-to-length item: pieces of length_mm each; total in meters."""
    pieces: int
    length_mm: float

    @property
    def total(self) -> float:
        return self.pieces * self.length_mm / 1000.0


Measure = Union[SimpleQuantity, CompositeQuantity]


class Order(db.Model):
    """Sales order (or quote, while kind is orcamento)."""
    __tablename__ = 'sales_order'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(32), nullable=False, unique=True)
    customer_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(32), nullable=False, default='pendente', index=True)
    kind = db.Column(db.String(32), nullable=False, default=ORDER_KIND_QUOTE)

    order_date = db.Column(db.Date, nullable=False, default=lambda: TimezoneUtils.business_today())
    lead_time_days = db.Column(db.Integer, nullable=True)
    expected_delivery_date = db.Column(db.Date, nullable=True)

    approved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now)

    items = db.relationship('OrderItem', back_populates='order', order_by='OrderItem.id',
                            cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint("kind IN ('orcamento', 'pedido_confirmado')", name='check_order_kind'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'customer_name': self.customer_name,
            'status': self.status,
            'kind': self.kind,
            'order_date': self.order_date.isoformat() if self.order_date else None,
            'lead_time_days': self.lead_time_days,
            'expected_delivery_date': self.expected_delivery_date.isoformat() if self.expected_delivery_date else None,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f'<Order {self.number} [{self.status}]>'


class OrderItem(db.Model):
    """
    Order line. The quantity is either simple (quantity) or composite
    (piece_count x piece_length_mm); the table enforces exactly one shape.
    """
    __tablename__ = 'sales_order_item'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sales_order.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)

    quantity = db.Column(db.Float, nullable=True)
    piece_count = db.Column(db.Integer, nullable=True)
    piece_length_mm = db.Column(db.Float, nullable=True)
    unit_price = db.Column(db.Float, nullable=True)

    order = db.relationship('Order', back_populates='items')
    product = db.relationship('Product')

    __table_args__ = (
        db.CheckConstraint(
            '(quantity IS NOT NULL AND quantity > 0 AND piece_count IS NULL AND piece_length_mm IS NULL) OR '
            '(quantity IS NULL AND piece_count IS NOT NULL AND piece_length_mm IS NOT NULL '
            'AND piece_count > 0 AND piece_length_mm > 0)',
            name='check_order_item_quantity_shape',
        ),
    )

    @property
    def measure(self) -> Measure:
        if self.quantity is not None:
            return SimpleQuantity(self.quantity)
        return CompositeQuantity(self.piece_count, self.piece_length_mm)

    @measure.setter
    def measure(self, value: Measure):
        if isinstance(value, SimpleQuantity):
            self.quantity = value.qty
            self.piece_count = None
            self.piece_length_mm = None
        elif isinstance(value, CompositeQuantity):
            self.quantity = None
            self.piece_count = value.pieces
            self.piece_length_mm = value.length_mm
        else:
            raise TypeError(f"Unsupported measure {value!r}")

    @property
    def total_quantity(self) -> float:
        return self.measure.total

    @property
    def is_composite(self) -> bool:
        return isinstance(self.measure, CompositeQuantity)

    def to_dict(self):
        data = {
            'id': self.id,
            'product_id': self.product_id,
            'total_quantity': self.total_quantity,
        }
        measure = self.measure
        if isinstance(measure, CompositeQuantity):
            data['measure'] = {'kind': 'composite', 'pieces': measure.pieces, 'length_mm': measure.length_mm}
        else:
            data['measure'] = {'kind': 'simple', 'qty': measure.qty}
        return data
