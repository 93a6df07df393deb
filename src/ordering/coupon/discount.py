"""Discount engine — pure coupon validation and discount computation.

Nothing here touches storage. Callers pass the coupon (an aggregate or any
object exposing the same attributes) and a snapshot of the order being
priced, and get back a verdict or an amount.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from ordering.coupon.coupon import DiscountKind, as_utc
from ordering.utils.money import format_amount, quantize, to_decimal

INVALID_CODE = "Invalid or expired coupon code"
INACTIVE = "Coupon is inactive"
OUT_OF_WINDOW = "Coupon is expired or not yet valid"
USAGE_EXCEEDED = "Coupon usage limit exceeded"
NOT_APPLICABLE = "Coupon not applicable to items in cart"
EXCLUDED_ITEM = "Coupon not applicable to some items in cart"
FIRST_ORDER_ONLY = "Coupon is only valid on a first order"


@dataclass(frozen=True)
class SnapshotLine:
    product_id: str
    category: str


@dataclass(frozen=True)
class OrderSnapshot:
    """What the engine needs to know about the order being priced.

    ``first_order`` is True when the customer has no prior non-cancelled
    order, False when they have one, None when the buyer is anonymous.
    """

    subtotal: Decimal
    lines: tuple[SnapshotLine, ...] = field(default_factory=tuple)
    first_order: bool | None = None


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> "Verdict":
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: str) -> "Verdict":
        return cls(ok=False, reason=reason)


def _lists(coupon):
    categories = getattr(coupon, "categories", None)
    if categories is None:
        categories = list(coupon.applicable_categories or [])
    products = getattr(coupon, "products", None)
    if products is None:
        products = list(coupon.applicable_products or [])
    excluded = getattr(coupon, "excluded", None)
    if excluded is None:
        excluded = list(coupon.excluded_products or [])
    return categories, [str(p) for p in products], [str(p) for p in excluded]


def validate(coupon, snapshot: OrderSnapshot, now: datetime | None = None) -> Verdict:
    """Run the coupon checks in order; the first failure wins."""
    now = as_utc(now or datetime.now(UTC))

    if not coupon.is_active:
        return Verdict.reject(INACTIVE)

    if now < as_utc(coupon.valid_from) or now > as_utc(coupon.valid_until):
        return Verdict.reject(OUT_OF_WINDOW)

    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        return Verdict.reject(USAGE_EXCEEDED)

    min_amount = to_decimal(coupon.min_order_amount or 0)
    if to_decimal(snapshot.subtotal) < min_amount:
        return Verdict.reject(f"Minimum order amount of {format_amount(min_amount)} required")

    categories, products, excluded = _lists(coupon)
    product_ids = [str(line.product_id) for line in snapshot.lines]

    if categories and not any(line.category in categories for line in snapshot.lines):
        return Verdict.reject(NOT_APPLICABLE)

    if products and not any(pid in products for pid in product_ids):
        return Verdict.reject(NOT_APPLICABLE)

    if excluded and any(pid in excluded for pid in product_ids):
        return Verdict.reject(EXCLUDED_ITEM)

    if coupon.first_time_only and snapshot.first_order is not True:
        return Verdict.reject(FIRST_ORDER_ONLY)

    return Verdict.accept()


def compute_discount(coupon, subtotal) -> Decimal:
    """Discount amount for ``subtotal``, never above the cap or the subtotal."""
    subtotal = to_decimal(subtotal)
    value = to_decimal(coupon.value)

    if coupon.kind == DiscountKind.PERCENTAGE.value:
        amount = subtotal * value / Decimal("100")
    else:
        amount = value

    if coupon.max_discount_amount is not None:
        amount = min(amount, to_decimal(coupon.max_discount_amount))

    amount = min(amount, subtotal)
    amount = max(amount, Decimal("0"))
    return quantize(amount)
