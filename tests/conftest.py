"""Pytest bootstrap configuration.

Environment is pinned before application modules import their settings.
Every test gets its own file-backed SQLite database so concurrent sessions
behave like separate connections.
"""
import os

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./.pytest_storefront.db")
os.environ.setdefault("PAYMENT__DEFAULT_PROVIDER", "inmemory")
os.environ.setdefault("PAYMENT__CURRENCY", "USD")

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import update

from application.dtos.orders import Actor, CartLine
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentLifecycleService
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.external.payments.inmemory import InMemoryGateway
from infrastructure.models import ProductModel
from infrastructure.unit_of_work import make_uow_factory

from tests.catalog_data import CATALOG, WIDGET


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_tables(eng)
    session_factory = build_session_factory(eng)
    async with session_factory() as session:
        session.add_all([ProductModel(**row) for row in CATALOG])
        await session.commit()
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory):
    return make_uow_factory(session_factory)


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def payment_service(uow_factory, gateway):
    return PaymentLifecycleService(uow_factory, gateway)


@pytest.fixture
def order_service(uow_factory, payment_service):
    return OrderApplicationService(uow_factory, refunds=payment_service, currency="USD", auto_refund=True)


@pytest.fixture
def customer():
    return Actor(id="user-1")


@pytest.fixture
def stranger():
    return Actor(id="user-2")


@pytest.fixture
def operator():
    return Actor(id="ops-1", role="ADMIN")


@pytest.fixture
def stock_of(uow_factory):
    async def _stock(product_id: str) -> int:
        async with uow_factory(readonly=True) as uow:
            snapshot = await uow.catalog.get_snapshot(product_id)
        return snapshot.stock

    return _stock


@pytest.fixture
def set_price(session_factory):
    async def _set(product_id: str, price: Decimal) -> None:
        async with session_factory() as session:
            await session.execute(
                update(ProductModel).where(ProductModel.id == product_id).values(price=price)
            )
            await session.commit()

    return _set


@pytest.fixture
def paid_order(order_service, payment_service, gateway, customer):
    """Create an order and run it through initiate + gateway success + confirm."""

    async def _paid(*lines: CartLine):
        order = await order_service.create_order(customer.id, list(lines) or [CartLine(product_id=WIDGET, quantity=2)])
        initiation = await payment_service.initiate_payment(order.id, customer)
        gateway.set_status(initiation.external_transaction_id, "succeeded")
        paid = await payment_service.confirm_payment(order.id, initiation.external_transaction_id, customer)
        return paid, initiation

    return _paid
