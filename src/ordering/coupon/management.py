"""Coupon administration — commands and handler."""

import json
from datetime import datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.domain import ordering
from ordering.errors import Conflict, NotFound


@ordering.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=20)
    name = String(required=True, max_length=100)
    description = String(max_length=500)
    kind = String(required=True)
    value = Float(required=True)
    min_order_amount = Float(default=0.0)
    max_discount_amount = Float()
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    usage_limit = Integer()
    applicable_categories = Text()  # JSON array
    applicable_products = Text()  # JSON array
    excluded_products = Text()  # JSON array
    first_time_only = Boolean(default=False)
    created_by = Identifier()


@ordering.command(part_of="Coupon")
class UpdateCoupon:
    code = String(required=True, max_length=20)
    changes = Text(required=True)  # JSON: {field: value}


@ordering.command(part_of="Coupon")
class ToggleCoupon:
    code = String(required=True, max_length=20)


def _load(value):
    if value is None:
        return None
    return json.loads(value) if isinstance(value, str) else value


def _decode_changes(raw) -> dict:
    changes = dict(_load(raw) or {})
    for key in ("valid_from", "valid_until"):
        if isinstance(changes.get(key), str):
            changes[key] = datetime.fromisoformat(changes[key])
    return changes


def load_coupon(code) -> Coupon:
    try:
        return current_domain.repository_for(Coupon).get(normalize_code(code))
    except ObjectNotFoundError:
        raise NotFound(f"Coupon {normalize_code(code)} not found")


@ordering.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        code = normalize_code(command.code)
        try:
            repo.get(code)
        except ObjectNotFoundError:
            pass
        else:
            raise Conflict(f"Coupon {code} already exists")

        coupon = Coupon.create(
            code=code,
            name=command.name,
            description=command.description,
            kind=command.kind,
            value=command.value,
            min_order_amount=command.min_order_amount,
            max_discount_amount=command.max_discount_amount,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            usage_limit=command.usage_limit,
            applicable_categories=_load(command.applicable_categories),
            applicable_products=_load(command.applicable_products),
            excluded_products=_load(command.excluded_products),
            first_time_only=command.first_time_only,
            created_by=command.created_by,
        )
        repo.add(coupon)
        return coupon.code

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        coupon = load_coupon(command.code)
        coupon.update_terms(**_decode_changes(command.changes))
        current_domain.repository_for(Coupon).add(coupon)
        return coupon.code

    @handle(ToggleCoupon)
    def toggle_coupon(self, command):
        coupon = load_coupon(command.code)
        coupon.toggle()
        current_domain.repository_for(Coupon).add(coupon)
        return coupon.is_active
