"""Coupon application service — administration and the public checkout preview."""

import json
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from ordering.catalogue.port import Catalogue
from ordering.catalogue.resolve import resolve_lines
from ordering.coupon.coupon import Coupon, as_utc, normalize_code
from ordering.coupon.discount import INVALID_CODE, OrderSnapshot, SnapshotLine, compute_discount, validate
from ordering.coupon.management import CreateCoupon, ToggleCoupon, UpdateCoupon, load_coupon
from ordering.errors import CouponRejected, NotFound
from ordering.order.pricing import subtotal_of
from ordering.order.queries import is_first_order
from ordering.principal import Permission, Principal
from ordering.utils.locks import KeyedLocks, coupon_key
from ordering.utils.money import as_float

logger = structlog.get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


class CouponService:
    def __init__(self, catalogue: Catalogue, locks: KeyedLocks):
        self.catalogue = catalogue
        self.locks = locks

    def create(self, principal: Principal, **terms) -> Coupon:
        principal.require(Permission.MANAGE_COUPONS)
        code = normalize_code(terms.pop("code"))
        for key in ("applicable_categories", "applicable_products", "excluded_products"):
            terms[key] = json.dumps([str(v) for v in terms.get(key) or []])

        with self.locks.hold(coupon_key(code)):
            current_domain.process(CreateCoupon(code=code, created_by=principal.id, **terms), asynchronous=False)

        logger.info("coupon_created", code=code, created_by=principal.id)
        return load_coupon(code)

    def update(self, principal: Principal, code: str, **changes) -> Coupon:
        principal.require(Permission.MANAGE_COUPONS)
        with self.locks.hold(coupon_key(code)):
            current_domain.process(
                UpdateCoupon(code=normalize_code(code), changes=json.dumps(changes, default=_json_default)),
                asynchronous=False,
            )
        logger.info("coupon_updated", code=normalize_code(code), fields=sorted(changes))
        return load_coupon(code)

    def toggle(self, principal: Principal, code: str) -> Coupon:
        principal.require(Permission.MANAGE_COUPONS)
        with self.locks.hold(coupon_key(code)):
            current_domain.process(ToggleCoupon(code=normalize_code(code)), asynchronous=False)
        coupon = load_coupon(code)
        logger.info("coupon_toggled", code=coupon.code, is_active=coupon.is_active)
        return coupon

    def get(self, principal: Principal, code: str) -> Coupon:
        principal.require(Permission.MANAGE_COUPONS)
        return load_coupon(code)

    def list_coupons(self, principal: Principal, active_only=False) -> list[Coupon]:
        principal.require(Permission.MANAGE_COUPONS)
        query = current_domain.repository_for(Coupon)._dao.query
        if active_only:
            query = query.filter(is_active=True)
        return sorted(query.all().items, key=lambda c: c.code)

    def overview(self, principal: Principal, now=None, recent=5) -> dict:
        """Coupon counts, total redemptions and the most recently created coupons."""
        principal.require(Permission.MANAGE_COUPONS)
        now = now or datetime.now(UTC)
        coupons = current_domain.repository_for(Coupon)._dao.query.limit(None).all().items
        newest = sorted(coupons, key=lambda c: as_utc(c.created_at) or _EPOCH, reverse=True)
        return {
            "total_coupons": len(coupons),
            "active_coupons": sum(1 for c in coupons if c.is_active),
            "expired_coupons": sum(1 for c in coupons if as_utc(c.valid_until) < now),
            "total_usage": sum(c.used_count or 0 for c in coupons),
            "recent_coupons": newest[:recent],
        }

    def preview(self, principal: Principal, code: str, items: list[dict], now=None) -> dict:
        """Price ``items`` with ``code`` applied, without consuming a usage."""
        lines = resolve_lines(self.catalogue, items)
        subtotal = subtotal_of(lines)
        try:
            coupon = load_coupon(code)
        except NotFound:
            raise CouponRejected(normalize_code(code), INVALID_CODE)

        snapshot = OrderSnapshot(
            subtotal=subtotal,
            lines=tuple(SnapshotLine(product_id=line.product_id, category=line.category) for line in lines),
            first_order=is_first_order(principal.id) if principal.is_customer else None,
        )
        verdict = validate(coupon, snapshot, now or datetime.now(UTC))
        if not verdict.ok:
            raise CouponRejected(coupon.code, verdict.reason)

        discount = compute_discount(coupon, subtotal)
        return {
            "code": coupon.code,
            "name": coupon.name,
            "kind": coupon.kind,
            "value": coupon.value,
            "subtotal": as_float(subtotal),
            "discount": as_float(discount),
            "discounted_subtotal": as_float(subtotal - discount),
        }
