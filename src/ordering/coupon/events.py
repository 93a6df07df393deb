"""Domain events for the Coupon aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Coupon")
class CouponCreated:
    """An admin published a new coupon."""

    __version__ = 1

    code = String(required=True)
    name = String(required=True)
    kind = String(required=True)
    value = Float(required=True)
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    usage_limit = Integer()
    created_by = Identifier()


@ordering.event(part_of="Coupon")
class CouponUpdated:
    """Coupon terms changed. Existing orders keep their snapshot."""

    __version__ = 1

    code = String(required=True)
    changed_fields = Text(required=True)  # JSON list of field names
    updated_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponToggled:
    __version__ = 1

    code = String(required=True)
    is_active = Boolean(default=False)
    toggled_at = DateTime(required=True)


@ordering.event(part_of="Coupon")
class CouponRedeemed:
    """One usage consumed by a successfully placed order."""

    __version__ = 1

    code = String(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
    redeemed_at = DateTime(required=True)
