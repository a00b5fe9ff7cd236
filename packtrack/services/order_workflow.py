"""
Status tables for sales orders and production orders.
"""

from enum import Enum

from ..exceptions import InvalidTransitionError


class OrderStatus(str, Enum):
    PENDING = "pendente"
    APPROVED = "aprovado"
    IN_PRODUCTION = "producao"
    FINISHED = "finalizado"
    AWAITING_DISPATCH = "aguardando_despacho"
    DELIVERED = "entregue"
    CANCELLED = "cancelado"
    REFUSED = "recusado"


class ProductionStatus(str, Enum):
    WAITING = "aguardando"
    IN_PRODUCTION = "em_producao"
    PARTIAL = "parcial"
    DONE = "concluido"
    CANCELLED = "cancelado"


ORDER_TERMINAL = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value, OrderStatus.REFUSED.value}
ORDER_ABORT = {OrderStatus.CANCELLED.value, OrderStatus.REFUSED.value}

ORDER_FORWARD = {
    OrderStatus.PENDING.value: {OrderStatus.APPROVED.value},
    OrderStatus.APPROVED.value: {OrderStatus.IN_PRODUCTION.value},
    OrderStatus.IN_PRODUCTION.value: {OrderStatus.FINISHED.value},
    OrderStatus.FINISHED.value: {OrderStatus.AWAITING_DISPATCH.value},
    OrderStatus.AWAITING_DISPATCH.value: {OrderStatus.DELIVERED.value},
}

PRODUCTION_FORWARD = {
    ProductionStatus.WAITING.value: {ProductionStatus.IN_PRODUCTION.value, ProductionStatus.CANCELLED.value},
    ProductionStatus.IN_PRODUCTION.value: {ProductionStatus.PARTIAL.value, ProductionStatus.DONE.value},
    ProductionStatus.PARTIAL.value: {ProductionStatus.IN_PRODUCTION.value, ProductionStatus.DONE.value},
}


def allowed_order_targets(current):
    if current in ORDER_TERMINAL:
        return set()
    return set(ORDER_FORWARD.get(current, set())) | ORDER_ABORT


def check_order_transition(current, target):
    """Raise InvalidTransitionError unless current -> target is on the allow-list."""
    if current == target or target not in allowed_order_targets(current):
        raise InvalidTransitionError(current, target, entity="order")


def check_production_transition(current, target):
    if current == target or target not in PRODUCTION_FORWARD.get(current, set()):
        raise InvalidTransitionError(current, target, entity="production_order")
