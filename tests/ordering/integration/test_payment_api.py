import json

import pytest

from ordering.payment.signature import payment_signature, sign


@pytest.fixture()
def gateway_order(client, place_via_api, customer_headers):
    order_id = place_via_api(payment_method="Online").json()["id"]
    response = client.post("/payments/create-order", json={"order_id": order_id}, headers=customer_headers)
    assert response.status_code == 200
    return response.json()


def _verify(client, services, gateway_order_id, payment_id="pay_1", signature=None):
    if signature is None:
        signature = payment_signature(services.settings.gateway_key_secret, gateway_order_id, payment_id)
    return client.post(
        "/payments/verify",
        json={"gateway_order_id": gateway_order_id, "gateway_payment_id": payment_id, "signature": signature},
    )


def _webhook(client, services, payload, signature=None):
    body = json.dumps(payload).encode("utf-8")
    if signature is None:
        signature = sign(services.settings.webhook_secret, body)
    return client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Gateway-Signature": signature, "Content-Type": "application/json"},
    )


def _captured(gateway_order_id, payment_id="pay_1", event="payment.captured"):
    return {"event": event, "payload": {"payment": {"entity": {"id": payment_id, "order_id": gateway_order_id}}}}


class TestCreateGatewayOrder:
    def test_returns_checkout_details(self, gateway_order, services):
        assert gateway_order["amount"] == 2459
        assert gateway_order["currency"] == "USD"
        assert gateway_order["key_id"] == services.settings.gateway_key_id
        assert gateway_order["gateway_order_id"].startswith("order_")

    def test_gateway_outage_is_502(self, client, place_via_api, customer_headers, gateway):
        order_id = place_via_api(payment_method="Online").json()["id"]
        gateway.configure(should_succeed=False, failure_reason="Provider down")

        response = client.post("/payments/create-order", json={"order_id": order_id}, headers=customer_headers)

        assert response.status_code == 502
        assert response.json() == {"error": "Provider down", "details": {}}


class TestVerify:
    def test_marks_order_paid(self, client, services, gateway_order):
        response = _verify(client, services, gateway_order["gateway_order_id"])

        assert response.status_code == 200
        body = response.json()
        assert body["payment_status"] == "Paid"
        assert body["status"] == "Preparing"
        assert body["payment_ref"]["gateway_payment_id"] == "pay_1"

    def test_tampered_signature_is_400(self, client, services, gateway_order):
        response = _verify(client, services, gateway_order["gateway_order_id"], signature="f" * 64)

        assert response.status_code == 400
        assert response.json()["error"] == "Payment signature verification failed"

    def test_verify_then_webhook_logs_one_preparing_entry(self, client, services, gateway_order, admin_headers):
        gw_order_id = gateway_order["gateway_order_id"]
        _verify(client, services, gw_order_id)

        ack = _webhook(client, services, _captured(gw_order_id))

        assert ack.status_code == 200
        assert ack.json() == {"status": "ok", "event": "payment.captured", "applied": False}
        order = client.get(f"/orders/{gateway_order['order_id']}", headers=admin_headers).json()
        assert [e["status"] for e in order["status_history"]].count("Preparing") == 1


class TestWebhook:
    def test_bad_signature_is_400(self, client, services, gateway_order):
        response = _webhook(client, services, _captured(gateway_order["gateway_order_id"]), signature="nope")
        assert response.status_code == 400

    def test_missing_signature_is_400(self, client):
        assert client.post("/payments/webhook", content=b"{}").status_code == 400

    def test_failed_after_captured_changes_nothing(self, client, services, gateway_order, admin_headers):
        gw_order_id = gateway_order["gateway_order_id"]
        _webhook(client, services, _captured(gw_order_id))

        ack = _webhook(client, services, _captured(gw_order_id, event="payment.failed"))

        assert ack.json()["applied"] is False
        order = client.get(f"/orders/{gateway_order['order_id']}", headers=admin_headers).json()
        assert order["payment_status"] == "Paid"
        assert order["status"] == "Preparing"

    def test_unknown_events_are_acknowledged(self, client, services):
        ack = _webhook(client, services, {"event": "order.paid", "payload": {}})
        assert ack.status_code == 200
        assert ack.json()["applied"] is False


class TestRefundEndpoint:
    def test_admin_refunds_paid_order(self, client, services, gateway_order, admin_headers):
        _verify(client, services, gateway_order["gateway_order_id"])

        response = client.post(
            "/payments/refund",
            json={"order_id": gateway_order["order_id"], "amount": 4.59, "reason": "Late"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["payment_status"] == "Refunded"
        assert body["refunded_amount"] == 4.59
        assert body["status_history"][-1]["note"].endswith("- Late")

    def test_unpaid_order_is_400(self, client, gateway_order, admin_headers):
        response = client.post("/payments/refund", json={"order_id": gateway_order["order_id"]}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["details"] == {"payment_status": ["Only paid orders can be refunded"]}

    def test_customer_is_forbidden(self, client, services, gateway_order, customer_headers):
        _verify(client, services, gateway_order["gateway_order_id"])
        response = client.post(
            "/payments/refund", json={"order_id": gateway_order["order_id"]}, headers=customer_headers
        )
        assert response.status_code == 403
