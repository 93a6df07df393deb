"""House coupons published on a fresh install."""

import json
from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon
from ordering.coupon.management import CreateCoupon

logger = structlog.get_logger(__name__)

DEFAULT_COUPONS = [
    {
        "code": "WELCOME10",
        "name": "Welcome Discount",
        "description": "Get 10% off on your first order",
        "kind": "percentage",
        "value": 10.0,
        "min_order_amount": 20.0,
        "max_discount_amount": 10.0,
        "usage_limit": 1000,
        "first_time_only": True,
    },
    {
        "code": "SAVE5",
        "name": "Save $5",
        "description": "Save $5 on orders over $30",
        "kind": "fixed",
        "value": 5.0,
        "min_order_amount": 30.0,
        "usage_limit": 500,
    },
    {
        "code": "VEG20",
        "name": "Vegetarian Special",
        "description": "20% off on vegetarian pizzas",
        "kind": "percentage",
        "value": 20.0,
        "min_order_amount": 15.0,
        "max_discount_amount": 15.0,
        "usage_limit": 200,
        "applicable_categories": ["Veg"],
    },
]


def seed_default_coupons(created_by=None, valid_for=timedelta(days=365)) -> list[str]:
    """Publish the house coupons that do not exist yet. Returns the codes created."""
    repo = current_domain.repository_for(Coupon)
    now = datetime.now(UTC)
    created = []
    for terms in DEFAULT_COUPONS:
        try:
            repo.get(terms["code"])
            continue
        except ObjectNotFoundError:
            pass

        terms = dict(terms)
        categories = terms.pop("applicable_categories", [])
        current_domain.process(
            CreateCoupon(
                **terms,
                applicable_categories=json.dumps(categories),
                valid_from=now,
                valid_until=now + valid_for,
                created_by=created_by,
            ),
            asynchronous=False,
        )
        created.append(terms["code"])

    if created:
        logger.info("default_coupons_seeded", codes=created)
    return created
