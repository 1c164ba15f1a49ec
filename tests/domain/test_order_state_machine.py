from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, InvalidStatusTransitionException
from domain.order.entity import Order, OrderItem, OrderStatus, compute_total
from domain.order.state_machine import (
    OPERATOR_TARGETS,
    can_transition,
    ensure_transition,
    requires_refund,
)


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.PAID),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PAID, OrderStatus.CANCELLED),
        (OrderStatus.PAID, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.PAID),
        (OrderStatus.PAID, OrderStatus.PENDING),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        ensure_transition(current, target, "order-1")
    assert exc_info.value.error_type == "INVALID_STATUS_TRANSITION"
    assert exc_info.value.details == {"order_id": "order-1", "from": current.value, "to": target.value}


def test_terminal_states_have_no_exits():
    for target in OrderStatus:
        assert not can_transition(OrderStatus.DELIVERED, target)
        assert not can_transition(OrderStatus.CANCELLED, target)


def test_refund_and_operator_rules():
    assert requires_refund(OrderStatus.PAID, OrderStatus.CANCELLED)
    assert not requires_refund(OrderStatus.PENDING, OrderStatus.CANCELLED)
    assert OrderStatus.PAID not in OPERATOR_TARGETS


def test_order_total_is_derived_from_snapshots():
    items = [
        OrderItem(product_id="a", quantity=2, unit_price=Decimal("10.00")),
        OrderItem(product_id="b", quantity=3, unit_price=Decimal("0.99")),
    ]
    order = Order.place("user-1", items, "usd")
    assert order.total == Decimal("22.97") == compute_total(items)
    assert order.currency == "USD"
    assert order.status is OrderStatus.PENDING


def test_order_rejects_mismatched_total_and_empty_items():
    item = OrderItem(product_id="a", quantity=1, unit_price=Decimal("5"))
    with pytest.raises(DomainValidationException):
        Order(id=None, owner_id="u", items=[item], total=Decimal("6"), currency="USD")
    with pytest.raises(DomainValidationException):
        Order(id=None, owner_id="u", items=[], total=Decimal("0"), currency="USD")


def test_order_item_is_immutable_and_validated():
    item = OrderItem(product_id="a", quantity=1, unit_price=Decimal("5"))
    with pytest.raises(AttributeError):
        item.unit_price = Decimal("1")  # type: ignore[misc]
    with pytest.raises(DomainValidationException):
        OrderItem(product_id="a", quantity=0, unit_price=Decimal("5"))
