from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class OrderTransitionClaim(db.Model):
    """Durable idempotency guard: a transition with side effects runs once per order."""
    __tablename__ = 'order_transition_claim'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sales_order.id'), nullable=False)
    transition = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('order_id', 'transition', name='uq_order_transition_claim'),
    )
