import time
from decimal import Decimal

import pytest

from application.ports.payment_gateway import PaymentGateway
from domain.common.exceptions import PaymentGatewayException
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.inmemory import InMemoryGateway
from infrastructure.external.payments.stripe_client import StripeGateway


class _MapClient(BasePaymentClient):
    provider = "stripe"


def test_provider_status_mapping():
    c = _MapClient()
    assert c._map_status("succeeded") == "succeeded"
    assert c._map_status("processing") == "pending"
    assert c._map_status("requires_action") == "pending"
    assert c._map_status("requires_payment_method") == "pending"
    assert c._map_status("canceled") == "canceled"
    assert c._map_status("something_new") == "something_new"
    assert c._map_refund_status("pending") == "pending"
    assert c._map_refund_status("canceled") == "failed"


def test_stripe_minor_units():
    assert StripeGateway._to_minor(Decimal("20.00"), "usd") == 2000
    assert StripeGateway._to_minor(Decimal("0.99"), "EUR") == 99
    assert StripeGateway._to_minor(Decimal("500"), "JPY") == 500
    assert StripeGateway._from_minor(2350, "usd") == Decimal("23.50")


def test_stripe_requires_secret_key(monkeypatch):
    from core.settings import payment_settings

    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    with pytest.raises(RuntimeError):
        StripeGateway()


def test_factory_selects_provider():
    gw = get_payment_gateway("inmemory")
    assert isinstance(gw, InMemoryGateway)
    assert isinstance(gw, PaymentGateway)
    with pytest.raises(ValueError):
        get_payment_gateway("carrier-pigeon")


@pytest.mark.asyncio
async def test_inmemory_refund_is_idempotent_per_intent():
    gw = InMemoryGateway(auto_succeed=True)
    intent = await gw.create_intent(Decimal("20.00"), "USD", {"order_id": "o-1"})

    first = await gw.refund(intent.id)
    second = await gw.refund(intent.id)

    assert first.id == second.id
    assert first.amount == Decimal("20.00")


@pytest.mark.asyncio
async def test_inmemory_refuses_refund_without_capture():
    gw = InMemoryGateway()
    intent = await gw.create_intent(Decimal("5.00"), "USD", {"order_id": "o-2"})

    with pytest.raises(PaymentGatewayException) as exc_info:
        await gw.refund(intent.id)
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_stripe_call_deadline_maps_to_timeout(monkeypatch):
    from core.settings import payment_settings
    from shared.codes.payment_codes import PaymentCode

    monkeypatch.setattr(payment_settings.timeouts, "total", 0.01)
    gw = StripeGateway(secret_key="sk_test_local")

    def _slow(**kwargs):
        time.sleep(0.2)

    with pytest.raises(PaymentGatewayException) as exc_info:
        await gw._call("retrieve_intent", _slow, id="pi_slow")
    assert exc_info.value.code == PaymentCode.TIMEOUT
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_stripe_refund_uses_payment_currency(monkeypatch):
    import stripe
    from core.settings import payment_settings

    monkeypatch.setattr(payment_settings, "currency", "USD")
    sent = {}

    def _create(**params):
        sent.update(params)
        return {"id": "re_1", "status": "succeeded", "amount": params["amount"], "currency": "jpy"}

    monkeypatch.setattr(stripe.Refund, "create", _create)
    gw = StripeGateway(secret_key="sk_test_local")

    receipt = await gw.refund("pi_1", Decimal("500"), "JPY")

    assert sent["amount"] == 500
    assert sent["idempotency_key"] == "refund-pi_1"
    assert receipt.amount == Decimal("500")
