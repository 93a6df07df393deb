"""Builds realtime notifications from committed orders and hands them to the hub.

Services call these only after the unit of work committed. A failure here is
logged and dropped; it never undoes or fails the state change that caused it.
"""

import structlog

from ordering.realtime.hub import ADMIN_TOPIC, EventHub, customer_topic, order_topic

logger = structlog.get_logger(__name__)

ORDER_CREATED = "order-created"
ORDER_STATUS_CHANGED = "order-status-changed"
PAYMENT_STATUS_CHANGED = "payment-status-changed"


def _iso(value):
    return value.isoformat() if value else None


def order_summary(order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id) if order.customer_id else None,
        "customer_name": order.customer.name if order.customer else None,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "total": order.total,
        "item_count": sum(item.quantity for item in order.items or []),
        "estimated_delivery_at": _iso(order.estimated_delivery_at),
        "created_at": _iso(order.created_at),
    }


class OrderNotifier:
    def __init__(self, hub: EventHub):
        self.hub = hub

    def _publish(self, topic, event_type, data) -> None:
        try:
            self.hub.publish(topic, event_type, data)
        except Exception:
            logger.exception("realtime_publish_failed", topic=topic, event_type=event_type)

    def order_created(self, order) -> None:
        data = order_summary(order)
        self._publish(ADMIN_TOPIC, ORDER_CREATED, data)
        if order.customer_id:
            self._publish(customer_topic(order.customer_id), ORDER_CREATED, data)

    def status_changed(self, order) -> None:
        latest = order.timeline[-1]
        self._publish(
            order_topic(order.id),
            ORDER_STATUS_CHANGED,
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "note": latest.note,
                "timestamp": _iso(latest.timestamp),
                "estimated_delivery_at": _iso(order.estimated_delivery_at),
                "actual_delivered_at": _iso(order.actual_delivered_at),
            },
        )

    def payment_changed(self, order) -> None:
        self._publish(
            order_topic(order.id),
            PAYMENT_STATUS_CHANGED,
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "payment_status": order.payment_status,
                "status": order.status,
                "gateway_payment_id": order.gateway_payment_id,
                "refund_id": order.refund_id,
                "timestamp": _iso(order.updated_at),
            },
        )
