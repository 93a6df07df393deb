from decimal import Decimal

import pytest

from ordering.errors import InvalidTransition
from ordering.order.events import OrderStatusChanged
from ordering.order.order import Order, OrderStatus
from ordering.order.pricing import PricedLine, price_order

LEGAL = [
    ("Pending", "Preparing"),
    ("Pending", "Cancelled"),
    ("Preparing", "On The Way"),
    ("Preparing", "Cancelled"),
    ("On The Way", "Delivered"),
    ("On The Way", "Cancelled"),
]

ILLEGAL = [
    ("Pending", "On The Way"),
    ("Pending", "Delivered"),
    ("Pending", "Pending"),
    ("Preparing", "Pending"),
    ("Preparing", "Delivered"),
    ("On The Way", "Preparing"),
    ("Delivered", "Cancelled"),
    ("Delivered", "Preparing"),
    ("Cancelled", "Preparing"),
    ("Cancelled", "Delivered"),
]

# How to reach each state from Pending
PATHS = {
    "Pending": [],
    "Preparing": ["Preparing"],
    "On The Way": ["Preparing", "On The Way"],
    "Delivered": ["Preparing", "On The Way", "Delivered"],
    "Cancelled": ["Cancelled"],
}


def _order(customer_info, start="Pending"):
    lines = [PricedLine("margherita", "Margherita", "Veg", Decimal("10.00"), 2)]
    order = Order.create(
        order_number="PIZ1700000000000STATE",
        customer=customer_info,
        lines=lines,
        pricing=price_order(lines, Decimal("2.99"), Decimal("0.08")),
        payment_method="Cash on Delivery",
    )
    for status in PATHS[start]:
        order.change_status(status)
    order._events = []
    return order


@pytest.mark.parametrize("current,target", LEGAL)
def test_legal_transitions(customer_info, current, target):
    order = _order(customer_info, current)
    before = len(order.timeline)

    order.change_status(target)

    assert order.status == target
    assert len(order.timeline) == before + 1
    assert order.timeline[-1].status == target
    assert order.timeline[-1].note == f"Status updated to {target}"


@pytest.mark.parametrize("current,target", ILLEGAL)
def test_illegal_transitions_change_nothing(customer_info, current, target):
    order = _order(customer_info, current)
    before = len(order.timeline)

    with pytest.raises(InvalidTransition) as exc:
        order.change_status(target)

    assert exc.value.messages == {"status": [f"Cannot transition from {current} to {target}"]}
    assert order.status == current
    assert len(order.timeline) == before
    assert order._events == []


@pytest.mark.parametrize("status", ["Delivered", "Cancelled"])
def test_terminal_states(customer_info, status):
    order = _order(customer_info, status)
    assert order.is_terminal
    assert not any(order.can_transition_to(s.value) for s in OrderStatus)


class TestStatusSideEffects:
    def test_custom_note_is_logged(self, customer_info):
        order = _order(customer_info)
        order.change_status("Preparing", note="Oven is hot")
        assert order.timeline[-1].note == "Oven is hot"

    def test_on_the_way_refreshes_estimate(self, customer_info):
        order = _order(customer_info, "Preparing")
        order.change_status("On The Way", on_the_way_eta_minutes=15)
        latest = order.timeline[-1]
        assert (order.estimated_delivery_at - latest.timestamp).total_seconds() == 15 * 60

    def test_delivered_stamps_actual_delivery(self, customer_info):
        order = _order(customer_info, "On The Way")
        assert order.actual_delivered_at is None
        order.change_status("Delivered")
        assert order.actual_delivered_at == order.timeline[-1].timestamp

    def test_history_sequence_is_monotonic(self, customer_info):
        order = _order(customer_info, "Delivered")
        assert [e.sequence for e in order.timeline] == [0, 1, 2, 3]
        assert [e.status for e in order.timeline] == ["Pending", "Preparing", "On The Way", "Delivered"]

    def test_raises_status_changed_event(self, customer_info):
        order = _order(customer_info)
        order.change_status("Cancelled", note="Customer called")

        events = [e for e in order._events if isinstance(e, OrderStatusChanged)]
        assert len(events) == 1
        assert events[0].previous_status == "Pending"
        assert events[0].new_status == "Cancelled"
        assert events[0].note == "Customer called"
        assert events[0].sequence == 1
