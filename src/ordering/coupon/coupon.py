"""Coupon aggregate (CQRS) — admin-managed discount terms.

A coupon is identified by its upper-cased code. Its usage counter only moves
forward, and only when an order that redeemed it commits. Coupons are never
deleted; admins deactivate them instead.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.coupon.events import CouponCreated, CouponRedeemed, CouponToggled, CouponUpdated
from ordering.domain import ordering


class DiscountKind(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PizzaCategory(Enum):
    VEG = "Veg"
    NON_VEG = "Non-Veg"
    VEGAN = "Vegan"


# Terms an admin may change after publication
_EDITABLE_FIELDS = (
    "name",
    "description",
    "kind",
    "value",
    "min_order_amount",
    "max_discount_amount",
    "valid_from",
    "valid_until",
    "usage_limit",
    "applicable_categories",
    "applicable_products",
    "excluded_products",
    "first_time_only",
)
_LIST_FIELDS = ("applicable_categories", "applicable_products", "excluded_products")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@ordering.aggregate
class Coupon:
    code = String(identifier=True, required=True, min_length=3, max_length=20)
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    kind = String(choices=DiscountKind, default=DiscountKind.PERCENTAGE.value)
    value = Float(required=True, min_value=0.0)
    min_order_amount = Float(default=0.0, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)  # None means uncapped
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    usage_limit = Integer(min_value=1)  # None means unlimited
    used_count = Integer(default=0, min_value=0)
    applicable_categories = Text()  # JSON array
    applicable_products = Text()  # JSON array
    excluded_products = Text()  # JSON array
    first_time_only = Boolean(default=False)
    is_active = Boolean(default=True)
    created_by = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and as_utc(self.valid_from) >= as_utc(self.valid_until):
            raise ValidationError({"valid_until": ["Valid from date must be before valid until date"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.kind == DiscountKind.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        name,
        kind,
        value,
        valid_from,
        valid_until,
        description=None,
        min_order_amount=0.0,
        max_discount_amount=None,
        usage_limit=None,
        applicable_categories=None,
        applicable_products=None,
        excluded_products=None,
        first_time_only=False,
        created_by=None,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            name=name,
            description=description,
            kind=kind,
            value=value,
            min_order_amount=min_order_amount or 0.0,
            max_discount_amount=max_discount_amount,
            valid_from=as_utc(valid_from),
            valid_until=as_utc(valid_until),
            usage_limit=usage_limit,
            used_count=0,
            applicable_categories=json.dumps(list(applicable_categories or [])),
            applicable_products=json.dumps([str(p) for p in applicable_products or []]),
            excluded_products=json.dumps([str(p) for p in excluded_products or []]),
            first_time_only=bool(first_time_only),
            is_active=True,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                code=coupon.code,
                name=coupon.name,
                kind=coupon.kind,
                value=coupon.value,
                valid_from=coupon.valid_from,
                valid_until=coupon.valid_until,
                usage_limit=coupon.usage_limit,
                created_by=str(created_by) if created_by else None,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------
    @property
    def categories(self) -> list[str]:
        return json.loads(self.applicable_categories) if self.applicable_categories else []

    @property
    def products(self) -> list[str]:
        return json.loads(self.applicable_products) if self.applicable_products else []

    @property
    def excluded(self) -> list[str]:
        return json.loads(self.excluded_products) if self.excluded_products else []

    @property
    def remaining_usage(self) -> int | None:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - (self.used_count or 0))

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return as_utc(now) > as_utc(self.valid_until)

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update_terms(self, **changes):
        """Change any of the editable terms; unknown keys are rejected."""
        unknown = sorted(set(changes) - set(_EDITABLE_FIELDS))
        if unknown:
            raise ValidationError({"fields": [f"Cannot update {', '.join(unknown)}"]})
        if not changes:
            return

        with atomic_change(self):
            for field_name, value in changes.items():
                if field_name in _LIST_FIELDS:
                    value = json.dumps([str(v) for v in value or []])
                elif field_name in ("valid_from", "valid_until"):
                    value = as_utc(value)
                elif field_name == "first_time_only":
                    value = bool(value)
                setattr(self, field_name, value)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            CouponUpdated(
                code=self.code,
                changed_fields=json.dumps(sorted(changes)),
                updated_at=now,
            )
        )

    def toggle(self):
        self.is_active = not self.is_active
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(CouponToggled(code=self.code, is_active=self.is_active, toggled_at=now))

    def redeem(self, order_id):
        """Consume one usage on behalf of ``order_id``."""
        if self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit:
            raise ValidationError({"coupon_code": ["Coupon usage limit exceeded"]})

        self.used_count = (self.used_count or 0) + 1
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            CouponRedeemed(
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
                redeemed_at=now,
            )
        )
