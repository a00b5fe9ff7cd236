"""Service layer for the inventory core."""

from .cost_reconciler import (
    CostDivergenceAlert,
    apply_administrative_cost,
    check_divergence,
    pending_divergences,
    recalculate_recipes,
)
from .lot_ledger import consume_fifo, create_lot, peek_fifo, receive_purchase, validate_material_lot_sync
from .movement_recorder import movements_for, record_movement
from .order_approval import ApprovalResult, approve, transition
from .production_workflow import transition_production_order
from .provisioning import ProvisionResult, provision
from .reservation_service import ReservationService
from .stock_alerts import stock_alerts

__all__ = [
    'ApprovalResult',
    'CostDivergenceAlert',
    'ProvisionResult',
    'ReservationService',
    'apply_administrative_cost',
    'approve',
    'check_divergence',
    'consume_fifo',
    'create_lot',
    'movements_for',
    'peek_fifo',
    'pending_divergences',
    'provision',
    'recalculate_recipes',
    'receive_purchase',
    'record_movement',
    'stock_alerts',
    'transition',
    'transition_production_order',
    'validate_material_lot_sync',
]
