"""Turn requested ``{product_id, quantity}`` pairs into priced lines."""

from decimal import Decimal

from ordering.catalogue.port import Catalogue, ProductInfo
from ordering.errors import ItemUnavailable
from ordering.order.pricing import PricedLine


def priced_line(product: ProductInfo, quantity) -> PricedLine:
    """A line at the catalogue's current price."""
    return PricedLine(
        product_id=str(product.id),
        name=product.name,
        category=product.category,
        unit_price=Decimal(str(product.price)),
        quantity=int(quantity),
    )


def resolve_lines(catalogue: Catalogue, items) -> list[PricedLine]:
    """Price each requested item from the catalogue.

    The whole request fails on the first product that is missing or
    switched off; nothing is partially accepted.
    """
    lines = []
    for item in items:
        product_id = str(item["product_id"])
        product = catalogue.get_product(product_id)
        if product is None:
            raise ItemUnavailable(product_id, f"Pizza with ID {product_id} not found")
        if not product.is_available:
            raise ItemUnavailable(product_id, f"Pizza {product.name} is currently unavailable")
        lines.append(priced_line(product, item["quantity"]))
    return lines
