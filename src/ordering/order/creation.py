"""Order placement — command and handler.

Catalogue resolution happens before the command is issued; the command
carries priced lines. The handler validates the coupon against its live
state, prices the order, and writes the order and the coupon usage in the
same unit of work. Callers hold the ``coupon:<CODE>`` lock around
``process()`` so the usage check and the increment cannot interleave.
"""

import json
import secrets
import string
import time
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.coupon.discount import INVALID_CODE, OrderSnapshot, SnapshotLine, validate
from ordering.domain import ordering
from ordering.errors import Conflict, CouponRejected
from ordering.order.order import Order
from ordering.order.pricing import PricedLine, price_order, subtotal_of
from ordering.order.queries import find_by_number, is_first_order
from ordering.settings import get_settings

logger = structlog.get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier()  # Empty for anonymous checkouts
    customer = Text(required=True)  # JSON: CustomerInfo dict
    lines = Text(required=True)  # JSON: list of priced line dicts
    payment_method = String(required=True, max_length=50)
    coupon_code = String(max_length=20)
    special_instructions = String(max_length=300)


def generate_order_number(prefix: str) -> str:
    """``<prefix><epoch millis><5 random chars>``."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def decode_lines(raw) -> list[PricedLine]:
    data = json.loads(raw) if isinstance(raw, str) else raw
    return [
        PricedLine(
            product_id=str(line["product_id"]),
            name=line["name"],
            category=line.get("category") or "",
            unit_price=Decimal(str(line["unit_price"])),
            quantity=int(line["quantity"]),
        )
        for line in data
    ]


def encode_lines(lines) -> str:
    return json.dumps(
        [
            {
                "product_id": line.product_id,
                "name": line.name,
                "category": line.category,
                "unit_price": str(line.unit_price),
                "quantity": line.quantity,
            }
            for line in lines
        ]
    )


def load_coupon_for_checkout(code) -> Coupon:
    try:
        return current_domain.repository_for(Coupon).get(normalize_code(code))
    except ObjectNotFoundError:
        raise CouponRejected(normalize_code(code), INVALID_CODE)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        settings = get_settings()
        lines = decode_lines(command.lines)
        customer = json.loads(command.customer) if isinstance(command.customer, str) else command.customer

        coupon = None
        if command.coupon_code:
            coupon = load_coupon_for_checkout(command.coupon_code)
            snapshot = OrderSnapshot(
                subtotal=subtotal_of(lines),
                lines=tuple(SnapshotLine(product_id=line.product_id, category=line.category) for line in lines),
                first_order=is_first_order(command.customer_id),
            )
            verdict = validate(coupon, snapshot)
            if not verdict.ok:
                raise CouponRejected(coupon.code, verdict.reason)

        pricing = price_order(lines, settings.delivery_fee, settings.tax_rate, coupon)

        for _ in range(settings.order_number_attempts):
            order_number = generate_order_number(settings.order_number_prefix)
            if find_by_number(order_number) is None:
                break
        else:
            raise Conflict("Could not allocate a unique order number")

        order = Order.create(
            order_number=order_number,
            customer=customer,
            lines=lines,
            pricing=pricing,
            payment_method=command.payment_method,
            customer_id=command.customer_id,
            coupon=coupon,
            special_instructions=command.special_instructions,
            eta_minutes=settings.initial_eta_minutes,
        )
        current_domain.repository_for(Order).add(order)

        if coupon is not None:
            coupon.redeem(order.id)
            current_domain.repository_for(Coupon).add(coupon)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
            coupon_code=coupon.code if coupon else None,
        )
        return str(order.id)
