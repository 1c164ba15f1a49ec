import pytest

from application.services.order_service import OrderApplicationService
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentStatus
from infrastructure.tasks.tasks import refunds as refund_tasks
from tests.catalog_data import WIDGET


async def _payment_status(uow_factory, order_id):
    async with uow_factory(readonly=True) as uow:
        payment = await uow.payment_repository.get_active_by_order(order_id)
    return payment.status


@pytest.mark.asyncio
async def test_failed_refund_keeps_flag_until_sweep(order_service, payment_service, paid_order, gateway, customer, stock_of, uow_factory):
    paid, _ = await paid_order()
    gateway.fail_refunds = True

    cancelled = await order_service.cancel_order(paid.id, customer)

    # cancellation and stock release do not wait for the gateway
    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.refund_required is True
    assert await stock_of(WIDGET) == 5
    assert await _payment_status(uow_factory, paid.id) is PaymentStatus.COMPLETED

    summary = await payment_service.retry_pending_refunds()
    assert summary == {"attempted": 1, "refunded": 0, "failed": 1}

    gateway.fail_refunds = False
    summary = await payment_service.retry_pending_refunds()
    assert summary == {"attempted": 1, "refunded": 1, "failed": 0}
    assert await _payment_status(uow_factory, paid.id) is PaymentStatus.REFUNDED
    assert (await order_service.get_order(paid.id, customer)).refund_required is False

    # nothing left to sweep
    assert await payment_service.retry_pending_refunds() == {"attempted": 0, "refunded": 0, "failed": 0}


@pytest.mark.asyncio
async def test_manual_refund_mode_only_flags(uow_factory, payment_service, paid_order, gateway, customer):
    manual = OrderApplicationService(uow_factory, refunds=payment_service, auto_refund=False)
    paid, _ = await paid_order()

    cancelled = await manual.cancel_order(paid.id, customer)

    assert cancelled.refund_required is True
    assert not [c for c in gateway.calls if c[0] == "refund"]


@pytest.mark.asyncio
async def test_refund_is_not_repeated(order_service, payment_service, paid_order, gateway, customer):
    paid, initiation = await paid_order()
    await order_service.cancel_order(paid.id, customer)

    assert await payment_service.refund_cancelled_order(paid.id) is None
    assert gateway.calls.count(("refund", initiation.external_transaction_id)) == 1


def test_retry_refunds_task_runs_the_sweep(monkeypatch):
    seen = {}

    class _StubService:
        async def retry_pending_refunds(self, limit):
            seen["limit"] = limit
            return {"attempted": 0, "refunded": 0, "failed": 0}

    async def _fake_with_service(fn):
        return await fn(_StubService())

    monkeypatch.setattr(refund_tasks, "_with_service", _fake_with_service)

    result = refund_tasks.retry_refunds.apply(kwargs={"limit": 7})

    assert result.get() == {"attempted": 0, "refunded": 0, "failed": 0}
    assert seen == {"limit": 7}
