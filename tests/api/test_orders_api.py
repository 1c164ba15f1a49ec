import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_gateway, get_uow_factory
from main import app
from tests.catalog_data import LAST_ONE, WIDGET


CUSTOMER = {"X-User-Id": "user-1"}
OPERATOR = {"X-User-Id": "ops-1", "X-User-Role": "ADMIN"}


@pytest_asyncio.fixture
async def client(uow_factory, gateway):
    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _create(client, product_id=WIDGET, quantity=2, headers=CUSTOMER):
    return await client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": product_id, "quantity": quantity}]},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy", "database": "ok"}


@pytest.mark.asyncio
async def test_order_checkout_flow(client, gateway):
    created = await _create(client)
    assert created.status_code == 201
    order = created.json()["data"]
    assert order["status"] == "PENDING"
    assert order["total"] in ("20.00", "20.0", "20")
    assert created.headers.get("X-Request-ID")

    init = await client.post(f"/api/v1/orders/{order['id']}/payment", headers=CUSTOMER)
    assert init.status_code == 200
    payment = init.json()["data"]
    assert payment["client_secret"]

    again = await client.post(f"/api/v1/orders/{order['id']}/payment", json={"payment_method": "card"}, headers=CUSTOMER)
    assert again.json()["data"]["payment_id"] == payment["payment_id"]
    assert again.json()["data"]["reused"] is True

    gateway.set_status(payment["external_transaction_id"], "succeeded")
    body = {"payment_intent_id": payment["external_transaction_id"]}
    confirmed = await client.post(f"/api/v1/orders/{order['id']}/confirm-payment", json=body, headers=CUSTOMER)
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["status"] == "PAID"

    duplicate = await client.post(f"/api/v1/orders/{order['id']}/confirm-payment", json=body, headers=CUSTOMER)
    assert duplicate.status_code == 200

    shipped = await client.put(
        f"/api/v1/orders/admin/{order['id']}/status", json={"status": "SHIPPED"}, headers=OPERATOR
    )
    assert shipped.status_code == 200
    assert shipped.json()["data"]["status"] == "SHIPPED"


@pytest.mark.asyncio
async def test_error_mapping(client, gateway):
    empty = await client.post("/api/v1/orders", json={"items": []}, headers=CUSTOMER)
    assert empty.status_code == 422
    assert empty.json()["error"]["type"] == "EMPTY_CART"

    missing = await _create(client, product_id="sku-missing", quantity=1)
    assert missing.status_code == 404
    assert missing.json()["error"]["type"] == "PRODUCT_NOT_FOUND"

    short = await _create(client, product_id=LAST_ONE, quantity=2)
    assert short.status_code == 409
    assert short.json()["error"]["type"] == "INSUFFICIENT_STOCK"

    order = (await _create(client, quantity=1)).json()["data"]
    illegal = await client.put(
        f"/api/v1/orders/admin/{order['id']}/status", json={"status": "SHIPPED"}, headers=OPERATOR
    )
    assert illegal.status_code == 409
    assert illegal.json()["error"]["type"] == "INVALID_STATUS_TRANSITION"

    forbidden = await client.put(
        f"/api/v1/orders/admin/{order['id']}/status", json={"status": "SHIPPED"}, headers=CUSTOMER
    )
    assert forbidden.status_code == 403

    gateway.unavailable = True
    outage = await client.post(f"/api/v1/orders/{order['id']}/payment", headers=CUSTOMER)
    assert outage.status_code == 502
    assert outage.json()["error"]["type"] == "PAYMENT_GATEWAY_ERROR"

    anonymous = await client.get("/api/v1/orders")
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_cancel_and_listing(client):
    order = (await _create(client)).json()["data"]
    await _create(client, quantity=1, headers={"X-User-Id": "user-2"})

    foreign = await client.delete(f"/api/v1/orders/{order['id']}", headers={"X-User-Id": "user-2"})
    assert foreign.status_code == 404

    cancelled = await client.delete(f"/api/v1/orders/{order['id']}", headers=CUSTOMER)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "CANCELLED"

    again = await client.delete(f"/api/v1/orders/{order['id']}", headers=CUSTOMER)
    assert again.status_code == 409

    mine = (await client.get("/api/v1/orders", params={"status": "CANCELLED"}, headers=CUSTOMER)).json()["data"]
    assert mine["total"] == 1 and mine["items"][0]["id"] == order["id"]

    everything = (await client.get("/api/v1/orders/admin/all", params={"size": 1}, headers=OPERATOR)).json()["data"]
    assert everything["total"] == 2
    assert everything["pages"] == 2
    assert len(everything["items"]) == 1

    denied = await client.get("/api/v1/orders/admin/all", headers=CUSTOMER)
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_abandoned_intent_gets_replaced(client, gateway):
    order = (await _create(client)).json()["data"]
    first = (await client.post(f"/api/v1/orders/{order['id']}/payment", headers=CUSTOMER)).json()["data"]
    gateway.set_status(first["external_transaction_id"], "canceled")

    body = {"payment_intent_id": first["external_transaction_id"]}
    failed = await client.post(f"/api/v1/orders/{order['id']}/confirm-payment", json=body, headers=CUSTOMER)
    assert failed.status_code == 409
    assert failed.json()["error"]["type"] == "PAYMENT_FAILED"

    retry = await client.post(f"/api/v1/orders/{order['id']}/payment", headers=CUSTOMER)
    assert retry.status_code == 200
    fresh = retry.json()["data"]
    assert fresh["reused"] is False
    assert fresh["payment_id"] != first["payment_id"]
    assert fresh["client_secret"] != first["client_secret"]

    gateway.set_status(fresh["external_transaction_id"], "succeeded")
    body = {"payment_intent_id": fresh["external_transaction_id"]}
    paid = await client.post(f"/api/v1/orders/{order['id']}/confirm-payment", json=body, headers=CUSTOMER)
    assert paid.json()["data"]["status"] == "PAID"


@pytest.mark.asyncio
async def test_confirm_for_cancelled_order_never_reports_success(client, gateway):
    order = (await _create(client)).json()["data"]
    payment = (await client.post(f"/api/v1/orders/{order['id']}/payment", headers=CUSTOMER)).json()["data"]
    await client.delete(f"/api/v1/orders/{order['id']}", headers=CUSTOMER)
    gateway.set_status(payment["external_transaction_id"], "succeeded")

    body = {"payment_intent_id": payment["external_transaction_id"]}
    for _ in range(2):
        resp = await client.post(f"/api/v1/orders/{order['id']}/confirm-payment", json=body, headers=CUSTOMER)
        assert resp.status_code == 409
        assert resp.json()["error"]["type"] == "INVALID_STATUS_TRANSITION"
