from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class Material(db.Model):
    """Raw material (paper, film, adhesive...) stocked in FIFO lots."""
    __tablename__ = 'material'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default='kg')

    # Denormalized sum of active lot quantities
    stock_qty = db.Column(db.Float, nullable=False, default=0.0)
    admin_unit_cost = db.Column(db.Float, nullable=False, default=0.0)
    min_stock = db.Column(db.Float, nullable=False, default=0.0)
    reorder_point = db.Column(db.Float, nullable=False, default=0.0)

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now)

    lots = db.relationship('Lot', back_populates='material', order_by='[Lot.created_at, Lot.id]', lazy='dynamic')
    cost_history = db.relationship('MaterialCostHistory', back_populates='material',
                                   order_by='MaterialCostHistory.id', lazy='dynamic')

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        db.CheckConstraint('admin_unit_cost >= 0', name='check_material_admin_cost_non_negative'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'unit': self.unit,
            'stock_qty': self.stock_qty,
            'admin_unit_cost': self.admin_unit_cost,
            'min_stock': self.min_stock,
            'reorder_point': self.reorder_point,
        }

    def __repr__(self):
        return f'<Material {self.id}: {self.name} {self.stock_qty} {self.unit}>'


class MaterialCostHistory(db.Model):
    """Append-only log of administrative cost changes."""
    __tablename__ = 'material_cost_history'

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=False, index=True)
    previous_cost = db.Column(db.Float, nullable=False)
    new_cost = db.Column(db.Float, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    material = db.relationship('Material', back_populates='cost_history')

    def to_dict(self):
        return {
            'id': self.id,
            'material_id': self.material_id,
            'previous_cost': self.previous_cost,
            'new_cost': self.new_cost,
            'reason': self.reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
