import json

import pytest

from ordering.coupon.coupon import Coupon
from ordering.payment.signature import payment_signature, sign
from ordering.realtime.hub import Connection


class RecordingConnection(Connection):
    def __init__(self, connection_id, principal):
        super().__init__(connection_id, principal)
        self.messages = []

    def send(self, message):
        self.messages.append(message)

    def events(self, event_type=None):
        return [m for m in self.messages if event_type is None or m["event"] == event_type]


@pytest.fixture
def listen(services):
    """Connect a recording client and subscribe it to ``topics``."""

    def _listen(principal, *topics, connection_id="listener"):
        connection = RecordingConnection(connection_id, principal)
        services.hub.connect(connection)
        for topic in topics:
            services.hub.subscribe(connection.id, topic)
        return connection

    return _listen


@pytest.fixture
def place(services, customer, customer_info):
    """Place an order; defaults to two margheritas ($20.00) for ``customer``."""

    def _place(principal=None, items=None, coupon_code=None, payment_method="Cash on Delivery"):
        return services.orders.place_order(
            principal or customer,
            customer=customer_info,
            items=items or [{"product_id": "margherita", "quantity": 2}],
            payment_method=payment_method,
            coupon_code=coupon_code,
        )

    return _place


@pytest.fixture
def welcome_coupon(coupon_terms):
    from protean.utils.globals import current_domain

    coupon = Coupon.create(**coupon_terms)
    current_domain.repository_for(Coupon).add(coupon)
    return coupon


@pytest.fixture
def online_order(place, services, customer):
    """A Pending order with a gateway order attached."""
    order = place(payment_method="Online")
    created = services.payments.create_gateway_order(customer, order.id)
    return order.id, created["gateway_order_id"]


@pytest.fixture
def client_signature(services):
    def _sign(gateway_order_id, gateway_payment_id):
        return payment_signature(services.settings.gateway_key_secret, gateway_order_id, gateway_payment_id)

    return _sign


@pytest.fixture
def webhook(services):
    """Deliver a correctly signed webhook; returns the acknowledgement."""

    def _deliver(payload, signature=None):
        body = json.dumps(payload).encode("utf-8")
        if signature is None:
            signature = sign(services.settings.webhook_secret, body)
        return services.payments.handle_webhook(body, signature)

    return _deliver


@pytest.fixture
def payment_event():
    def _build(event, gateway_order_id, gateway_payment_id="pay_001"):
        return {
            "event": event,
            "payload": {"payment": {"entity": {"id": gateway_payment_id, "order_id": gateway_order_id}}},
        }

    return _build


@pytest.fixture
def refund_event():
    def _build(gateway_payment_id, refund_id="rfnd_001", amount=None, reason=None):
        entity = {"id": refund_id, "payment_id": gateway_payment_id}
        if amount is not None:
            entity["amount"] = amount
        if reason is not None:
            entity["notes"] = {"reason": reason}
        return {"event": "refund.processed", "payload": {"refund": {"entity": entity}}}

    return _build
