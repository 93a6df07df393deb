"""Domain events for the Order aggregate.

All events are versioned, immutable facts. They feed the daily statistics
projection; realtime notifications are built from the committed aggregate,
not from these events.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A customer checked out; the order starts Pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    items = Text(required=True)  # JSON: list of line dicts
    subtotal = Float(required=True)
    coupon_code = String()
    discount_amount = Float(default=0.0)
    delivery_fee = Float(required=True)
    tax = Float(required=True)
    total = Float(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    sequence = Integer(required=True)
    note = String()
    total = Float()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    """Payment status moved; ``source`` is client, webhook or admin."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    source = String(required=True)
    gateway_order_id = String()
    gateway_payment_id = String()
    refund_id = String()
    refunded_amount = Float()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class GatewayOrderCreated:
    __version__ = 1

    order_id = Identifier(required=True)
    gateway_order_id = String(required=True)
    amount_minor = Integer(required=True)
    currency = String(required=True)
    created_at = DateTime(required=True)
