"""Tests for coupon validation and discount computation."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from ordering.coupon.coupon import Coupon
from ordering.coupon.discount import (
    EXCLUDED_ITEM,
    FIRST_ORDER_ONLY,
    INACTIVE,
    NOT_APPLICABLE,
    OUT_OF_WINDOW,
    USAGE_EXCEEDED,
    OrderSnapshot,
    SnapshotLine,
    compute_discount,
    validate,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def _coupon(**overrides):
    terms = {
        "code": "WELCOME10",
        "name": "Welcome Discount",
        "kind": "percentage",
        "value": 10.0,
        "min_order_amount": 20.0,
        "max_discount_amount": 10.0,
        "valid_from": NOW - timedelta(days=1),
        "valid_until": NOW + timedelta(days=1),
    }
    terms.update(overrides)
    return Coupon.create(**terms)


def _snapshot(subtotal="25.00", lines=(("margherita", "Veg"),), first_order=True):
    return OrderSnapshot(
        subtotal=Decimal(subtotal),
        lines=tuple(SnapshotLine(product_id=pid, category=cat) for pid, cat in lines),
        first_order=first_order,
    )


class TestValidate:
    def test_accepts_coupon_meeting_every_condition(self):
        verdict = validate(_coupon(), _snapshot(), NOW)
        assert verdict.ok
        assert verdict.reason is None

    def test_inactive_coupon_rejected(self):
        coupon = _coupon()
        coupon.toggle()
        verdict = validate(coupon, _snapshot(), NOW)
        assert not verdict.ok
        assert verdict.reason == INACTIVE

    def test_not_yet_valid(self):
        coupon = _coupon(valid_from=NOW + timedelta(hours=1), valid_until=NOW + timedelta(days=2))
        assert validate(coupon, _snapshot(), NOW).reason == OUT_OF_WINDOW

    def test_expired(self):
        coupon = _coupon(valid_from=NOW - timedelta(days=10), valid_until=NOW - timedelta(seconds=1))
        assert validate(coupon, _snapshot(), NOW).reason == OUT_OF_WINDOW

    def test_window_boundaries_are_inclusive(self):
        coupon = _coupon(valid_from=NOW, valid_until=NOW + timedelta(days=1))
        assert validate(coupon, _snapshot(), NOW).ok

    def test_usage_limit_exhausted(self):
        coupon = _coupon(usage_limit=1)
        coupon.redeem("ord-1")
        assert validate(coupon, _snapshot(), NOW).reason == USAGE_EXCEEDED

    def test_unlimited_usage_when_limit_unset(self):
        coupon = _coupon(usage_limit=None)
        for n in range(5):
            coupon.redeem(f"ord-{n}")
        assert validate(coupon, _snapshot(), NOW).ok

    def test_minimum_order_amount_message(self):
        verdict = validate(_coupon(), _snapshot(subtotal="15.00"), NOW)
        assert verdict.reason == "Minimum order amount of $20.00 required"

    def test_subtotal_equal_to_minimum_is_enough(self):
        assert validate(_coupon(), _snapshot(subtotal="20.00"), NOW).ok

    def test_category_allow_list_needs_one_matching_item(self):
        coupon = _coupon(applicable_categories=["Veg"])
        assert validate(coupon, _snapshot(lines=(("pepperoni", "Non-Veg"),)), NOW).reason == NOT_APPLICABLE
        assert validate(coupon, _snapshot(lines=(("pepperoni", "Non-Veg"), ("margherita", "Veg"))), NOW).ok

    def test_product_allow_list(self):
        coupon = _coupon(applicable_products=["margherita"])
        assert validate(coupon, _snapshot(lines=(("pepperoni", "Non-Veg"),)), NOW).reason == NOT_APPLICABLE
        assert validate(coupon, _snapshot(lines=(("margherita", "Veg"),)), NOW).ok

    def test_excluded_product_anywhere_in_cart_rejects(self):
        coupon = _coupon(excluded_products=["pepperoni"])
        verdict = validate(coupon, _snapshot(lines=(("margherita", "Veg"), ("pepperoni", "Non-Veg"))), NOW)
        assert verdict.reason == EXCLUDED_ITEM

    def test_first_time_only_requires_first_order(self):
        coupon = _coupon(first_time_only=True)
        assert validate(coupon, _snapshot(first_order=True), NOW).ok
        assert validate(coupon, _snapshot(first_order=False), NOW).reason == FIRST_ORDER_ONLY

    def test_first_time_only_rejects_anonymous_buyers(self):
        coupon = _coupon(first_time_only=True)
        assert validate(coupon, _snapshot(first_order=None), NOW).reason == FIRST_ORDER_ONLY

    def test_first_failure_wins(self):
        coupon = _coupon(usage_limit=1, applicable_categories=["Vegan"])
        coupon.redeem("ord-1")
        coupon.toggle()
        # inactive, exhausted, below minimum and wrong category: inactive is reported
        verdict = validate(coupon, _snapshot(subtotal="5.00", lines=(("pepperoni", "Non-Veg"),)), NOW)
        assert verdict.reason == INACTIVE

    def test_minimum_checked_before_categories(self):
        coupon = _coupon(applicable_categories=["Vegan"])
        verdict = validate(coupon, _snapshot(subtotal="5.00"), NOW)
        assert verdict.reason == "Minimum order amount of $20.00 required"


class TestComputeDiscount:
    def test_percentage(self):
        assert compute_discount(_coupon(), Decimal("20.00")) == Decimal("2.00")

    def test_percentage_capped_by_max_discount(self):
        assert compute_discount(_coupon(), Decimal("250.00")) == Decimal("10.00")

    def test_fixed_amount(self):
        coupon = _coupon(kind="fixed", value=5.0, max_discount_amount=None)
        assert compute_discount(coupon, Decimal("30.00")) == Decimal("5.00")

    def test_fixed_amount_never_exceeds_subtotal(self):
        coupon = _coupon(kind="fixed", value=50.0, max_discount_amount=None, min_order_amount=0.0)
        assert compute_discount(coupon, Decimal("12.34")) == Decimal("12.34")

    def test_zero_cap_means_no_discount(self):
        coupon = _coupon(max_discount_amount=0.0)
        assert compute_discount(coupon, Decimal("40.00")) == Decimal("0.00")

    def test_rounds_half_up_to_cents(self):
        coupon = _coupon(value=12.5, max_discount_amount=None)
        # 12.5% of 10.10 = 1.2625
        assert compute_discount(coupon, Decimal("10.10")) == Decimal("1.26")
        # 12.5% of 10.20 = 1.275
        assert compute_discount(coupon, Decimal("10.20")) == Decimal("1.28")

    @pytest.mark.parametrize("subtotal", ["0.00", "0.01", "9.99", "20.00", "99.95", "1000.00"])
    def test_discount_bounded_by_subtotal_and_cap(self, subtotal):
        coupon = _coupon(value=100.0, max_discount_amount=25.0)
        amount = compute_discount(coupon, Decimal(subtotal))
        assert Decimal("0") <= amount <= Decimal(subtotal)
        assert amount <= Decimal("25.00")
