import asyncio
from decimal import Decimal

import pytest

from application.dtos.orders import CartLine
from domain.common.exceptions import (
    EmptyCartException,
    InsufficientStockException,
    InvalidQuantityException,
    OrderNotFoundException,
    ProductNotFoundException,
)
from domain.order.entity import OrderStatus
from tests.catalog_data import GADGET, LAST_ONE, RETIRED, WIDGET


@pytest.mark.asyncio
async def test_create_order_reserves_stock_and_freezes_total(order_service, customer, stock_of):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=2)])

    assert order.total == Decimal("20.00")
    assert order.status is OrderStatus.PENDING
    assert order.owner_id == customer.id
    assert [(i.product_id, i.quantity, i.unit_price) for i in order.items] == [(WIDGET, 2, Decimal("10.00"))]
    assert await stock_of(WIDGET) == 3


@pytest.mark.asyncio
async def test_insufficient_stock_leaves_nothing_behind(order_service, customer, stock_of):
    with pytest.raises(InsufficientStockException) as exc_info:
        await order_service.create_order(customer.id, [CartLine(product_id=LAST_ONE, quantity=2)])

    assert exc_info.value.error_type == "INSUFFICIENT_STOCK"
    assert await stock_of(LAST_ONE) == 1
    orders, total = await order_service.list_orders(customer)
    assert orders == [] and total == 0


@pytest.mark.asyncio
async def test_failure_on_second_line_rolls_back_first_reservation(order_service, customer, stock_of):
    lines = [CartLine(product_id=WIDGET, quantity=1), CartLine(product_id=GADGET, quantity=3)]
    with pytest.raises(InsufficientStockException):
        await order_service.create_order(customer.id, lines)

    assert await stock_of(WIDGET) == 5
    assert await stock_of(GADGET) == 2


@pytest.mark.asyncio
async def test_validation_errors_precede_side_effects(order_service, customer, stock_of):
    with pytest.raises(EmptyCartException):
        await order_service.create_order(customer.id, [])
    with pytest.raises(InvalidQuantityException):
        await order_service.create_order(
            customer.id, [CartLine(product_id=WIDGET, quantity=1), CartLine(product_id=GADGET, quantity=0)]
        )
    assert await stock_of(WIDGET) == 5


@pytest.mark.asyncio
async def test_unknown_or_inactive_product(order_service, customer, stock_of):
    with pytest.raises(ProductNotFoundException):
        await order_service.create_order(customer.id, [CartLine(product_id="sku-missing", quantity=1)])
    with pytest.raises(ProductNotFoundException):
        await order_service.create_order(customer.id, [CartLine(product_id=RETIRED, quantity=1)])
    assert await stock_of(RETIRED) == 10


@pytest.mark.asyncio
async def test_repeated_lines_are_merged(order_service, customer, stock_of):
    order = await order_service.create_order(
        customer.id,
        [CartLine(product_id=GADGET, quantity=1), CartLine(product_id=GADGET, quantity=1)],
    )
    assert len(order.items) == 1
    assert order.items[0].quantity == 2
    assert order.total == Decimal("7.00")
    assert await stock_of(GADGET) == 0


@pytest.mark.asyncio
async def test_price_snapshot_survives_catalog_price_change(order_service, customer, set_price):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=3)])
    await set_price(WIDGET, Decimal("12.50"))

    reloaded = await order_service.get_order(order.id, customer)
    assert reloaded.total == Decimal("30.00")
    assert reloaded.items[0].unit_price == Decimal("10.00")

    newer = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])
    assert newer.total == Decimal("12.50")


@pytest.mark.asyncio
async def test_concurrent_orders_for_last_unit(order_service, stock_of):
    results = await asyncio.gather(
        order_service.create_order("buyer-a", [CartLine(product_id=LAST_ONE, quantity=1)]),
        order_service.create_order("buyer-b", [CartLine(product_id=LAST_ONE, quantity=1)]),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockException)
    assert await stock_of(LAST_ONE) == 0


@pytest.mark.asyncio
async def test_get_order_hides_foreign_orders(order_service, customer, stranger, operator):
    order = await order_service.create_order(customer.id, [CartLine(product_id=WIDGET, quantity=1)])

    assert (await order_service.get_order(order.id, operator)).id == order.id
    with pytest.raises(OrderNotFoundException):
        await order_service.get_order(order.id, stranger)


@pytest.mark.asyncio
async def test_ledger_refuses_to_reserve_retired_product(uow_factory, stock_of):
    async with uow_factory() as uow:
        assert await uow.stock_ledger.reserve(RETIRED, 1) is False
        assert await uow.stock_ledger.reserve(WIDGET, 1) is True

    assert await stock_of(RETIRED) == 10
    assert await stock_of(WIDGET) == 4
