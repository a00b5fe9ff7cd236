"""Low-stock classification for materials and resale products."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import Material, Product
from ..models.product import PRODUCT_RESALE

logger = logging.getLogger(__name__)

LEVEL_CRITICAL = 'critico'
LEVEL_LOW = 'baixo'


@dataclass
class StockAlert:
    item_kind: str
    item_id: int
    name: str
    stock_qty: float
    min_stock: float
    reorder_point: float
    level: str
    unit: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_kind': self.item_kind,
            'item_id': self.item_id,
            'name': self.name,
            'stock_qty': self.stock_qty,
            'min_stock': self.min_stock,
            'reorder_point': self.reorder_point,
            'level': self.level,
            'unit': self.unit,
        }


def classify_level(stock_qty, min_stock, reorder_point) -> Optional[str]:
    stock_qty = float(stock_qty or 0.0)
    if reorder_point and stock_qty < float(reorder_point):
        return LEVEL_CRITICAL
    if min_stock and stock_qty < float(min_stock):
        return LEVEL_LOW
    return None


def stock_alerts() -> List[StockAlert]:
    """Materials and resale products below reorder point (critico) or minimum (baixo)."""
    alerts = []
    for material in Material.query.order_by(Material.name).all():
        level = classify_level(material.stock_qty, material.min_stock, material.reorder_point)
        if level:
            alerts.append(StockAlert('material', material.id, material.name, material.stock_qty,
                                     material.min_stock, material.reorder_point, level, material.unit))

    for product in Product.query.filter_by(kind=PRODUCT_RESALE).order_by(Product.name).all():
        level = classify_level(product.stock_qty, product.min_stock, product.reorder_point)
        if level:
            alerts.append(StockAlert('product', product.id, product.name, product.stock_qty,
                                     product.min_stock, product.reorder_point, level, product.unit))

    critical = sum(1 for a in alerts if a.level == LEVEL_CRITICAL)
    if alerts:
        logger.info(f"STOCK ALERTS: {critical} critical, {len(alerts) - critical} low")
    return alerts
