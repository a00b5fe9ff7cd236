"""Models package - imports all models for the application"""
from ..extensions import db

# Import in dependency order for PostgreSQL table creation
from .material import Material, MaterialCostHistory
from .lot import Lot
from .product import Product, Recipe
from .movement import Movement
from .order import Order, OrderItem, SimpleQuantity, CompositeQuantity
from .production_order import ProductionOrder
from .order_transition_claim import OrderTransitionClaim
from .lot_reservation import LotReservation

__all__ = [
    'db',
    'Material',
    'MaterialCostHistory',
    'Lot',
    'Product',
    'Recipe',
    'Movement',
    'Order',
    'OrderItem',
    'SimpleQuantity',
    'CompositeQuantity',
    'ProductionOrder',
    'OrderTransitionClaim',
    'LotReservation',
]
