"""Shared BDD fixtures and step definitions for the ordering context."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from ordering.coupon.coupon import Coupon
from ordering.order.queries import load_order
from ordering.principal import Principal


@pytest.fixture()
def outcome():
    """What the steps produced so far: the order under test and any error raised."""
    return {"order_id": None, "error": None}


@pytest.fixture()
def checkout(services, customer_info):
    def _checkout(customer_id, quantity, product_id, coupon_code=None, payment_method="Cash on Delivery"):
        return services.orders.place_order(
            Principal.customer(customer_id),
            customer=customer_info,
            items=[{"product_id": product_id, "quantity": quantity}],
            payment_method=payment_method,
            coupon_code=coupon_code,
        )

    return _checkout


# ---------------------------------------------------------------------------
# Given
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a coupon "{code}" for {percent:d} percent off orders of at least {minimum:f} capped at {cap:f}')
)
def _(coupon_terms, code, percent, minimum, cap):
    coupon_terms.update(code=code, value=float(percent), min_order_amount=minimum, max_discount_amount=cap)
    current_domain.repository_for(Coupon).add(Coupon.create(**coupon_terms))


@given(parsers.cfparse('customer "{customer_id}" has placed an order for {quantity:d} "{product_id}"'))
def _(checkout, outcome, customer_id, quantity, product_id):
    outcome["order_id"] = checkout(customer_id, quantity, product_id).id


# ---------------------------------------------------------------------------
# Then
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(outcome, status):
    assert load_order(outcome["order_id"]).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(outcome, status):
    assert load_order(outcome["order_id"]).payment_status == status


@then(parsers.cfparse('the status history has {count:d} "{status}" entry'))
def _(outcome, count, status):
    assert [e.status for e in load_order(outcome["order_id"]).timeline].count(status) == count
