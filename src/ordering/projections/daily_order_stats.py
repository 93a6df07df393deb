"""Daily order stats projection — the admin analytics dashboard.

Keyed by UTC date (YYYY-MM-DD): orders placed, delivered, cancelled and
refunded, gross order value, revenue from delivered orders, and discounts
granted through coupons.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.events import OrderPlaced, OrderStatusChanged, PaymentStatusChanged
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.utils.money import as_float


@ordering.projection
class DailyOrderStats:
    date = String(identifier=True, required=True, max_length=10)  # YYYY-MM-DD
    orders_placed = Integer(default=0)
    orders_delivered = Integer(default=0)
    orders_cancelled = Integer(default=0)
    orders_refunded = Integer(default=0)
    gross_order_value = Float(default=0.0)
    revenue = Float(default=0.0)
    discounts_granted = Float(default=0.0)
    refunds_issued = Float(default=0.0)


def _get_or_create(date_key):
    repo = current_domain.repository_for(DailyOrderStats)
    try:
        return repo.get(date_key)
    except ObjectNotFoundError:
        return DailyOrderStats(
            date=date_key,
            orders_placed=0,
            orders_delivered=0,
            orders_cancelled=0,
            orders_refunded=0,
            gross_order_value=0.0,
            revenue=0.0,
            discounts_granted=0.0,
            refunds_issued=0.0,
        )


def _money(value):
    return as_float(value or 0.0)


@ordering.projector(projector_for=DailyOrderStats, aggregates=[Order])
class DailyOrderStatsProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        record = _get_or_create(event.placed_at.date().isoformat())
        record.orders_placed = (record.orders_placed or 0) + 1
        record.gross_order_value = _money((record.gross_order_value or 0.0) + (event.total or 0.0))
        record.discounts_granted = _money((record.discounts_granted or 0.0) + (event.discount_amount or 0.0))
        current_domain.repository_for(DailyOrderStats).add(record)

    @on(OrderStatusChanged)
    def on_order_status_changed(self, event):
        if event.new_status not in (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value):
            return

        record = _get_or_create(event.changed_at.date().isoformat())
        if event.new_status == OrderStatus.DELIVERED.value:
            record.orders_delivered = (record.orders_delivered or 0) + 1
            record.revenue = _money((record.revenue or 0.0) + (event.total or 0.0))
        else:
            record.orders_cancelled = (record.orders_cancelled or 0) + 1
        current_domain.repository_for(DailyOrderStats).add(record)

    @on(PaymentStatusChanged)
    def on_payment_status_changed(self, event):
        if event.new_status != PaymentStatus.REFUNDED.value:
            return

        record = _get_or_create(event.changed_at.date().isoformat())
        record.orders_refunded = (record.orders_refunded or 0) + 1
        record.refunds_issued = _money((record.refunds_issued or 0.0) + (event.refunded_amount or 0.0))
        current_domain.repository_for(DailyOrderStats).add(record)


def stats_for(date_key: str) -> DailyOrderStats:
    """The record for ``date_key``; an all-zero record when nothing happened that day."""
    return _get_or_create(date_key)
