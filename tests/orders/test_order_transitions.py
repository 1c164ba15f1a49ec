import pytest

from application.dtos.orders import CartLine
from domain.common.exceptions import (
    ForbiddenException,
    InvalidStatusTransitionException,
    OrderNotFoundException,
)
from domain.order.entity import OrderStatus
from tests.catalog_data import GADGET, WIDGET


@pytest.mark.asyncio
async def test_create_then_cancel_restores_every_product(order_service, customer, stock_of):
    before = {WIDGET: await stock_of(WIDGET), GADGET: await stock_of(GADGET)}
    order = await order_service.create_order(
        customer.id, [CartLine(product_id=WIDGET, quantity=4), CartLine(product_id=GADGET, quantity=2)]
    )

    cancelled = await order_service.cancel_order(order.id, customer)

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.refund_required is False
    assert {WIDGET: await stock_of(WIDGET), GADGET: await stock_of(GADGET)} == before


@pytest.mark.asyncio
async def test_cancel_paid_order_refunds_and_rejects_second_cancel(
    order_service, paid_order, customer, gateway, stock_of
):
    paid, initiation = await paid_order(CartLine(product_id=WIDGET, quantity=2))
    assert await stock_of(WIDGET) == 3

    cancelled = await order_service.cancel_order(paid.id, customer)

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.refund_required is False
    assert cancelled.payment.status == "refunded"
    assert ("refund", initiation.external_transaction_id) in gateway.calls
    assert await stock_of(WIDGET) == 5

    with pytest.raises(InvalidStatusTransitionException):
        await order_service.cancel_order(paid.id, customer)
    assert await stock_of(WIDGET) == 5


@pytest.mark.asyncio
async def test_cancel_by_stranger_is_not_found(order_service, customer, stranger, stock_of):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])
    with pytest.raises(OrderNotFoundException):
        await order_service.cancel_order(order.id, stranger)
    assert await stock_of(WIDGET) == 4


@pytest.mark.asyncio
async def test_advance_pending_order_to_shipped_is_rejected(order_service, customer, operator):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])

    with pytest.raises(InvalidStatusTransitionException) as exc_info:
        await order_service.advance_status(order.id, OrderStatus.SHIPPED, operator)

    assert exc_info.value.error_type == "INVALID_STATUS_TRANSITION"
    assert (await order_service.get_order(order.id, customer)).status is OrderStatus.PENDING


@pytest.mark.asyncio
async def test_operator_fulfils_paid_order(order_service, paid_order, operator, stock_of):
    paid, _ = await paid_order()

    shipped = await order_service.advance_status(paid.id, OrderStatus.SHIPPED, operator)
    delivered = await order_service.advance_status(paid.id, OrderStatus.DELIVERED, operator)

    assert shipped.status is OrderStatus.SHIPPED
    assert delivered.status is OrderStatus.DELIVERED
    # fulfilment keeps the reservation
    assert await stock_of(WIDGET) == 3
    with pytest.raises(InvalidStatusTransitionException):
        await order_service.advance_status(paid.id, OrderStatus.CANCELLED, operator)


@pytest.mark.asyncio
async def test_operator_cannot_mark_paid_and_customers_cannot_advance(order_service, customer, operator):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])

    with pytest.raises(InvalidStatusTransitionException):
        await order_service.advance_status(order.id, OrderStatus.PAID, operator)
    with pytest.raises(ForbiddenException):
        await order_service.advance_status(order.id, OrderStatus.CANCELLED, customer)


@pytest.mark.asyncio
async def test_operator_cancel_goes_through_cancellation(order_service, customer, operator, stock_of):
    order = await order_service.create_order(customer.id, [CartLine(product_id=GADGET, quantity=2)])

    cancelled = await order_service.advance_status(order.id, OrderStatus.CANCELLED, operator)

    assert cancelled.status is OrderStatus.CANCELLED
    assert await stock_of(GADGET) == 2


@pytest.mark.asyncio
async def test_listing_is_scoped_and_filterable(order_service, customer, stranger, operator):
    first = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])
    await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])
    await order_service.create_order(stranger.id, [CartLine(product_id=GADGET, quantity=1)])
    await order_service.cancel_order(first.id, customer)

    mine, total = await order_service.list_orders(customer)
    assert total == 2 and {o.owner_id for o in mine} == {customer.id}

    cancelled, cancelled_total = await order_service.list_orders(customer, status=OrderStatus.CANCELLED)
    assert cancelled_total == 1 and cancelled[0].id == first.id

    everything, all_total = await order_service.list_all_orders(operator, limit=2)
    assert all_total == 3 and len(everything) == 2

    with pytest.raises(ForbiddenException):
        await order_service.list_all_orders(customer)
