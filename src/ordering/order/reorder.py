"""Reorder quotes: a past order's lines, repriced from today's catalogue.

A quote never touches the original order and creates nothing. The customer
checks out the returned items as a new order.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from ordering.catalogue.port import Catalogue
from ordering.catalogue.resolve import priced_line
from ordering.order.order import Order
from ordering.order.pricing import PricedLine, Pricing, price_order

NOTHING_AVAILABLE = "No items from this order are currently available"


@dataclass(frozen=True)
class ReorderQuote:
    original_order_id: str
    lines: tuple[PricedLine, ...]
    pricing: Pricing
    unavailable: tuple[str, ...] = ()


def quote_reorder(catalogue: Catalogue, order: Order, delivery_fee, tax_rate) -> ReorderQuote:
    """Reprice the lines of ``order`` whose products are still on the menu.

    Missing or switched-off products are dropped and listed in ``unavailable``.
    Coupons are not carried over.
    """
    lines, unavailable = [], []
    for item in order.lines:
        product = catalogue.get_product(str(item.product_id))
        if product is None or not product.is_available:
            unavailable.append(str(item.product_id))
            continue
        lines.append(priced_line(product, item.quantity))

    if not lines:
        raise ValidationError({"items": [NOTHING_AVAILABLE]})

    return ReorderQuote(
        original_order_id=str(order.id),
        lines=tuple(lines),
        pricing=price_order(lines, delivery_fee, tax_rate),
        unavailable=tuple(unavailable),
    )
