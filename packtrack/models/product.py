from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

PRODUCT_MANUFACTURED = 'manufactured'
PRODUCT_RESALE = 'resale'


class Product(db.Model):
    __tablename__ = 'product'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=PRODUCT_MANUFACTURED)
    unit = db.Column(db.String(32), nullable=False, default='un')

    # Resale goods only; manufactured goods are made to order
    stock_qty = db.Column(db.Float, nullable=False, default=0.0)
    min_stock = db.Column(db.Float, nullable=False, default=0.0)
    reorder_point = db.Column(db.Float, nullable=False, default=0.0)

    lead_time_days = db.Column(db.Integer, nullable=True)
    technical_instructions = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    recipes = db.relationship('Recipe', back_populates='product', cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint("kind IN ('manufactured', 'resale')", name='check_product_kind'),
    )

    @property
    def is_resale(self):
        return self.kind == PRODUCT_RESALE

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'kind': self.kind,
            'unit': self.unit,
            'stock_qty': self.stock_qty,
            'min_stock': self.min_stock,
            'reorder_point': self.reorder_point,
            'lead_time_days': self.lead_time_days,
        }

    def __repr__(self):
        return f'<Product {self.id}: {self.name} ({self.kind})>'


class Recipe(db.Model):
    """Bill of materials line: grams of a material consumed per product unit."""
    __tablename__ = 'recipe'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=False, index=True)
    # Informational; consumption_per_unit_g already accounts for every layer
    layers = db.Column(db.Integer, nullable=False, default=1)
    consumption_per_unit_g = db.Column(db.Float, nullable=False)
    cost_per_unit = db.Column(db.Float, nullable=False, default=0.0)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now)

    product = db.relationship('Product', back_populates='recipes')
    material = db.relationship('Material')

    __table_args__ = (
        db.UniqueConstraint('product_id', 'material_id', name='uq_recipe_product_material'),
        db.CheckConstraint('consumption_per_unit_g > 0', name='check_recipe_consumption_positive'),
    )

    def consumption_kg(self, units: float) -> float:
        return float(units) * self.consumption_per_unit_g / 1000.0

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'material_id': self.material_id,
            'layers': self.layers,
            'consumption_per_unit_g': self.consumption_per_unit_g,
            'cost_per_unit': self.cost_per_unit,
        }
