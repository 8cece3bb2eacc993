import base64
import hashlib
import json
import uuid

import pytest

from protoshop.core.config import get_settings
from protoshop.core.errors import GatewayError, GatewayHTTPError, GatewayTimeoutError
from protoshop.core.payment_gateway import PaymentState
from protoshop.main import app
from protoshop.models.order import Order


@pytest.fixture
def placed_order(client, make_user, make_product, address):
    """A prepaid order waiting on the gateway; returns (order_id, headers)."""
    _, headers = make_user()
    product = make_product(stock=5)
    resp = client.post(
        "/api/orders",
        headers=headers,
        json={
            "items": [{"product_id": str(product.id), "quantity": 1}],
            "shippingAddress": address,
            "paymentGateway": "phonepe",
        },
    )
    assert resp.status_code == 201
    return resp.json()["order_id"], headers


def _wrapped(payload: dict) -> dict:
    return {"response": base64.b64encode(json.dumps(payload).encode()).decode()}


def _settlement(order_id: str, code: str, state: str) -> dict:
    return {"code": code, "data": {"merchantTransactionId": order_id, "state": state}}


SIGNED = {"Authorization": hashlib.sha256(b"merchant:hunter2").hexdigest()}


def _callback(client, body: dict, headers: dict | None = None):
    return client.post(
        "/api/orders/payment/callback", json=body, headers=SIGNED if headers is None else headers
    )


# -------- webhook --------


def test_success_callback_marks_order_paid(client, placed_order, fetch):
    order_id, _ = placed_order

    resp = _callback(client, _wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED")))

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    order = fetch(Order, uuid.UUID(order_id))
    assert (order.status, order.payment_status) == ("processing", "paid")


def test_replayed_callback_is_a_no_op(client, placed_order, fetch, make_user):
    order_id, _ = placed_order
    _, admin = make_user(role="admin")
    body = _wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED"))

    _callback(client, body)
    client.put(f"/api/orders/{order_id}", headers=admin, json={"status": "shipped"})
    replay = _callback(client, body)

    assert replay.status_code == 200
    assert fetch(Order, uuid.UUID(order_id)).status == "shipped"


def test_failed_callback_cancels(client, placed_order, fetch):
    order_id, _ = placed_order

    body = {"code": "PAYMENT_ERROR", "data": {"merchantOrderId": order_id, "state": "FAILED"}}

    resp = _callback(client, body)

    assert resp.status_code == 200
    order = fetch(Order, uuid.UUID(order_id))
    assert (order.status, order.payment_status) == ("cancelled", "failed")


def test_late_success_does_not_revive_cancelled_order(client, placed_order, fetch):
    order_id, headers = placed_order
    client.post(f"/api/orders/{order_id}/cancel", headers=headers)

    _callback(client, _wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED")))

    order = fetch(Order, uuid.UUID(order_id))
    assert order.status == "cancelled"
    assert order.payment_status != "paid"


def test_pending_callback_leaves_order_alone(client, placed_order, fetch):
    order_id, _ = placed_order

    _callback(client, _wrapped(_settlement(order_id, "PAYMENT_PENDING", "PENDING")))

    assert fetch(Order, uuid.UUID(order_id)).status == "pending"


def test_unknown_order_is_acknowledged(client):
    for order_id in (str(uuid.uuid4()), "not-a-uuid"):
        resp = _callback(client, _wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED")))
        assert resp.status_code == 200


def test_malformed_callbacks_are_rejected(client):
    missing_id = _callback(client, _wrapped({"code": "PAYMENT_SUCCESS", "data": {"state": "COMPLETED"}}))
    assert missing_id.status_code == 400
    assert missing_id.json()["error"] == "Missing Order ID"

    garbage = _callback(client, {"response": "%%%not-base64%%%"})
    assert garbage.status_code == 400


def test_callback_authorization(client, placed_order, fetch):
    order_id, _ = placed_order
    body = _wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED"))

    for headers in ({}, {"Authorization": "nope"}, {"Authorization": "caf\xe9".encode("latin-1")}):
        rejected = _callback(client, body, headers=headers)
        assert rejected.status_code == 401
        assert rejected.json()["error"] == "Invalid callback authorization"
    assert fetch(Order, uuid.UUID(order_id)).status == "pending"

    digest = hashlib.sha256(b"merchant:hunter2").hexdigest()
    accepted = _callback(client, body, headers={"Authorization": f"SHA256 {digest}"})
    assert accepted.status_code == 200
    assert fetch(Order, uuid.UUID(order_id)).status == "processing"


def test_callbacks_rejected_without_configured_credentials(client, placed_order, settings, fetch):
    order_id, _ = placed_order
    unsecured = settings.model_copy(
        update={"PHONEPE_CALLBACK_USERNAME": None, "PHONEPE_CALLBACK_PASSWORD": None}
    )
    app.dependency_overrides[get_settings] = lambda: unsecured

    resp = client.post(
        "/api/orders/payment/callback",
        json=_wrapped(_settlement(order_id, "PAYMENT_SUCCESS", "COMPLETED")),
    )

    assert resp.status_code == 401
    order = fetch(Order, uuid.UUID(order_id))
    assert (order.status, order.payment_status) == ("pending", "pending")


# -------- polling --------


def test_listing_orders_picks_up_settled_payment(client, placed_order, gateway):
    order_id, headers = placed_order
    gateway.states[order_id] = PaymentState.SUCCESS

    [order] = client.get("/api/orders", headers=headers).json()

    assert order["status"] == "processing"
    assert order["payment_status"] == "paid"


def test_polling_abandoned_payment_cancels(client, placed_order, gateway):
    order_id, headers = placed_order
    gateway.status_error = GatewayHTTPError("Order not found", 404)

    [order] = client.get("/api/orders", headers=headers).json()

    assert order["status"] == "cancelled"
    assert order["payment_status"] == "failed"


def test_polling_timeout_cancels(client, placed_order, gateway):
    _, headers = placed_order
    gateway.status_error = GatewayTimeoutError("Payment gateway timed out")

    [order] = client.get("/api/orders", headers=headers).json()

    assert order["status"] == "cancelled"


@pytest.mark.parametrize(
    "error",
    [GatewayHTTPError("Internal error", 500), GatewayError("Payment gateway unreachable")],
)
def test_polling_transient_errors_leave_order_pending(client, placed_order, gateway, error):
    _, headers = placed_order
    gateway.status_error = error

    resp = client.get("/api/orders", headers=headers)

    assert resp.status_code == 200
    assert resp.json()[0]["status"] == "pending"


def test_polling_skips_cod_orders(client, make_user, make_product, gateway, address):
    _, headers = make_user()
    product = make_product(price="10.00")
    client.post(
        "/api/orders",
        headers=headers,
        json={
            "items": [{"product_id": str(product.id), "quantity": 1}],
            "shippingAddress": address,
            "paymentGateway": "cod",
        },
    )
    gateway.status_error = GatewayTimeoutError("should not be called")

    [order] = client.get("/api/orders", headers=headers).json()

    assert order["status"] == "pending"
    assert order["payment_status"] == "cod"
