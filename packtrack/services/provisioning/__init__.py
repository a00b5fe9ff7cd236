from .service import material_demand, provision, resale_demand, resolve_order
from .types import MaterialReservationPlan, ProvisionResult, Shortage, ShortageKind

__all__ = [
    'MaterialReservationPlan',
    'ProvisionResult',
    'Shortage',
    'ShortageKind',
    'material_demand',
    'provision',
    'resale_demand',
    'resolve_order',
]
