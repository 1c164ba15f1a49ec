"""
Order status state machine.

PENDING -> PAID        payment confirmed (payment lifecycle only)
PENDING -> CANCELLED   owner/operator cancels, stock released
PAID    -> CANCELLED   owner/operator cancels, stock released, refund follows
PAID    -> SHIPPED     operator
SHIPPED -> DELIVERED   operator
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import InvalidStatusTransitionException
from domain.order.entity import OrderStatus


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.CANCELLED, OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Targets an operator may request through advance_status; PAID is only reachable
# through payment confirmation.
OPERATOR_TARGETS = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: OrderStatus, target: OrderStatus, order_id: Optional[str] = None) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransitionException(order_id, current.value, target.value)


def requires_refund(current: OrderStatus, target: OrderStatus) -> bool:
    return current is OrderStatus.PAID and target is OrderStatus.CANCELLED
