"""Order pricing.

    subtotal = sum(unit_price * quantity)
    tax      = round((subtotal - discount) * tax_rate)
    total    = (subtotal - discount) + delivery_fee + tax

Every figure is rounded half-up to cents. Prices come from the catalogue at
checkout, never from the client.
"""

from dataclasses import dataclass
from decimal import Decimal

from ordering.coupon.discount import compute_discount
from ordering.utils.money import quantize, to_decimal


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    name: str
    category: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return quantize(self.unit_price * self.quantity)


@dataclass(frozen=True)
class Pricing:
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal

    @property
    def discounted_subtotal(self) -> Decimal:
        return self.subtotal - self.discount


def subtotal_of(lines) -> Decimal:
    return quantize(sum((line.line_total for line in lines), Decimal("0")))


def price_order(lines, delivery_fee, tax_rate, coupon=None) -> Pricing:
    subtotal = subtotal_of(lines)
    discount = compute_discount(coupon, subtotal) if coupon is not None else Decimal("0.00")
    taxable = subtotal - discount
    tax = quantize(taxable * to_decimal(tax_rate))
    fee = quantize(delivery_fee)
    return Pricing(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=fee,
        tax=tax,
        total=quantize(taxable + fee + tax),
    )
