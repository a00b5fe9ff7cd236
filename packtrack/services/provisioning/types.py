"""
Type definitions for order provisioning
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..lot_ledger import FifoSlice


class ShortageKind(Enum):
    """What kind of stock is missing"""
    MATERIAL = "material"
    RESALE_PRODUCT = "resale_product"


@dataclass
class Shortage:
    kind: ShortageKind
    item_id: int
    name: str
    required: float
    available: float
    unit: str = "kg"

    @property
    def missing(self) -> float:
        return max(self.required - self.available, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'item_id': self.item_id,
            'name': self.name,
            'required': self.required,
            'available': self.available,
            'missing': self.missing,
            'unit': self.unit,
        }


@dataclass
class MaterialReservationPlan:
    """Lots that would serve one material's aggregated demand."""
    material_id: int
    name: str
    required: float
    lots: List[FifoSlice] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'material_id': self.material_id,
            'name': self.name,
            'required': self.required,
            'lots': [s.to_dict() for s in self.lots],
        }


@dataclass
class ProvisionResult:
    order_id: int
    shortages: List[Shortage] = field(default_factory=list)
    reservations: List[MaterialReservationPlan] = field(default_factory=list)
    cost_alerts: List[Any] = field(default_factory=list)

    @property
    def fully_satisfiable(self) -> bool:
        return not self.shortages

    def shortage_for(self, item_id: int, kind: ShortageKind = ShortageKind.MATERIAL) -> Optional[Shortage]:
        for shortage in self.shortages:
            if shortage.item_id == item_id and shortage.kind == kind:
                return shortage
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'fully_satisfiable': self.fully_satisfiable,
            'shortages': [s.to_dict() for s in self.shortages],
            'reservations': [r.to_dict() for r in self.reservations],
            'cost_alerts': [a.to_dict() for a in self.cost_alerts],
        }
