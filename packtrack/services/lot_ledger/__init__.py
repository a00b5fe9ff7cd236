"""
Lot Ledger - Canonical Entry Point

All lot creation and FIFO consumption for raw materials goes through here.
"""

from ._lot_ops import (
    ConsumptionResult,
    ReceiptResult,
    consume_fifo,
    create_lot,
    lock_material,
    peek_fifo,
    receive_purchase,
)
from ._selection import FifoPlan, FifoSlice, active_lots, plan_fifo, reserved_by_others
from ._validation import find_lot_sync_violations, validate_material_lot_sync

__all__ = [
    'ConsumptionResult',
    'ReceiptResult',
    'FifoPlan',
    'FifoSlice',
    'active_lots',
    'consume_fifo',
    'create_lot',
    'find_lot_sync_violations',
    'lock_material',
    'peek_fifo',
    'plan_fifo',
    'receive_purchase',
    'reserved_by_others',
    'validate_material_lot_sync',
]
