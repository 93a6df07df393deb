"""Order aggregate (CQRS) — a pizza order from checkout to doorstep.

State Machine:
    Pending → Preparing → On The Way → Delivered
    Cancelled is reachable from every non-terminal state.

Payment status (Pending / Paid / Failed / Refunded) moves independently of
the delivery status, except that a confirmed payment advances a Pending
order to Preparing and a failed one cancels it. Every status change appends
exactly one entry to the history log.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.domain import ordering
from ordering.errors import InvalidTransition
from ordering.order.events import GatewayOrderCreated, OrderPlaced, OrderStatusChanged, PaymentStatusChanged
from ordering.utils.money import as_float


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PREPARING = "Preparing"
    ON_THE_WAY = "On The Way"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "Cash on Delivery"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    DIGITAL_WALLET = "Digital Wallet"
    ONLINE = "Online"


class PaymentSource(Enum):
    CLIENT = "client"
    WEBHOOK = "webhook"
    ADMIN = "admin"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED},
    OrderStatus.ON_THE_WAY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

PLACED_NOTE = "Order placed successfully"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class CustomerInfo:
    """Contact and delivery details captured at checkout.

    Kept on the order as given; later profile edits do not rewrite history.
    """

    name = String(required=True, max_length=100)
    phone = String(required=True, max_length=20)
    email = String(max_length=254)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    delivery_instructions = String(max_length=300)


@ordering.value_object(part_of="Order")
class AppliedDiscount:
    """Coupon terms as they were when the order was placed."""

    coupon_code = String(required=True, max_length=20)
    coupon_name = String(max_length=100)
    kind = String(required=True, max_length=20)
    raw_value = Float(required=True)
    applied_amount = Float(required=True, min_value=0.0)


@ordering.value_object(part_of="Order")
class PaymentReference:
    gateway_order_id = String(max_length=100)
    gateway_payment_id = String(max_length=100)
    transaction_id = String(max_length=100)
    paid_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class LineItem:
    position = Integer(required=True, min_value=0)
    product_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    category = String(max_length=20)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)


@ordering.entity(part_of="Order")
class StatusEntry:
    sequence = Integer(required=True, min_value=0)
    status = String(required=True, max_length=20)
    timestamp = DateTime(required=True)
    note = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=40, unique=True)
    customer_id = Identifier()  # Nullable for anonymous checkouts
    customer = ValueObject(CustomerInfo)
    items = HasMany(LineItem)
    subtotal = Float(required=True, min_value=0.0)
    discount = ValueObject(AppliedDiscount)
    delivery_fee = Float(required=True, min_value=0.0)
    tax = Float(required=True, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    history = HasMany(StatusEntry)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH_ON_DELIVERY.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    gateway_order_id = String(max_length=100)
    gateway_payment_id = String(max_length=100)
    transaction_id = String(max_length=100)
    paid_at = DateTime()
    refund_id = String(max_length=100)
    refunded_amount = Float(min_value=0.0)
    estimated_delivery_at = DateTime()
    actual_delivered_at = DateTime()
    special_instructions = String(max_length=300)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_cover_delivery_fee(self):
        if self.total is not None and self.delivery_fee is not None and self.total < self.delivery_fee:
            raise ValidationError({"total": ["Order total cannot be less than the delivery fee"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        customer,
        lines,
        pricing,
        payment_method,
        customer_id=None,
        coupon=None,
        special_instructions=None,
        eta_minutes=30,
    ):
        """Build a Pending order with every derived field already computed.

        Args:
            order_number: Unique human-facing code.
            customer: Dict of CustomerInfo fields.
            lines: ``PricedLine`` objects resolved from the catalogue.
            pricing: ``Pricing`` for those lines (and coupon, if any).
            coupon: The redeemed coupon, copied into ``discount``.
        """
        if not lines:
            raise ValidationError({"items": ["Order must contain at least one item"]})

        now = datetime.now(UTC)
        discount = None
        if coupon is not None:
            discount = AppliedDiscount(
                coupon_code=coupon.code,
                coupon_name=coupon.name,
                kind=coupon.kind,
                raw_value=coupon.value,
                applied_amount=as_float(pricing.discount),
            )

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            customer=CustomerInfo(**customer),
            items=[
                LineItem(
                    position=position,
                    product_id=line.product_id,
                    name=line.name,
                    category=line.category,
                    unit_price=as_float(line.unit_price),
                    quantity=line.quantity,
                    line_total=as_float(line.line_total),
                )
                for position, line in enumerate(lines)
            ],
            subtotal=as_float(pricing.subtotal),
            discount=discount,
            delivery_fee=as_float(pricing.delivery_fee),
            tax=as_float(pricing.tax),
            total=as_float(pricing.total),
            status=OrderStatus.PENDING.value,
            history=[StatusEntry(sequence=0, status=OrderStatus.PENDING.value, timestamp=now, note=PLACED_NOTE)],
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            estimated_delivery_at=now + timedelta(minutes=eta_minutes),
            special_instructions=special_instructions,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id) if customer_id else None,
                items=json.dumps(
                    [
                        {
                            "product_id": str(line.product_id),
                            "name": line.name,
                            "quantity": line.quantity,
                            "unit_price": as_float(line.unit_price),
                        }
                        for line in lines
                    ]
                ),
                subtotal=order.subtotal,
                coupon_code=discount.coupon_code if discount else None,
                discount_amount=discount.applied_amount if discount else 0.0,
                delivery_fee=order.delivery_fee,
                tax=order.tax,
                total=order.total,
                payment_method=order.payment_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def timeline(self) -> list:
        """History entries, oldest first."""
        return sorted(self.history or [], key=lambda entry: entry.sequence)

    @property
    def lines(self) -> list:
        return sorted(self.items or [], key=lambda item: item.position)

    @property
    def discount_amount(self) -> float:
        return self.discount.applied_amount if self.discount else 0.0

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    @property
    def payment_ref(self) -> PaymentReference | None:
        if not self.gateway_order_id:
            return None
        return PaymentReference(
            gateway_order_id=self.gateway_order_id,
            gateway_payment_id=self.gateway_payment_id,
            transaction_id=self.transaction_id,
            paid_at=self.paid_at,
        )

    def can_transition_to(self, target) -> bool:
        return OrderStatus(target) in _VALID_TRANSITIONS[OrderStatus(self.status)]

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def _append_history(self, status, note, now):
        sequence = max((entry.sequence for entry in self.history or []), default=-1) + 1
        self.add_history(StatusEntry(sequence=sequence, status=status, timestamp=now, note=note))
        return sequence

    def change_status(self, new_status, note=None, on_the_way_eta_minutes=15):
        """Move along the state machine and log the change.

        Raises InvalidTransition (and writes nothing) for illegal moves.
        """
        target = OrderStatus(new_status)
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        note = note or f"Status updated to {target.value}"
        self.status = target.value
        sequence = self._append_history(target.value, note, now)

        if target == OrderStatus.ON_THE_WAY:
            self.estimated_delivery_at = now + timedelta(minutes=on_the_way_eta_minutes)
        elif target == OrderStatus.DELIVERED and self.actual_delivered_at is None:
            self.actual_delivered_at = now

        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target.value,
                sequence=sequence,
                note=note,
                total=self.total,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def _set_payment_status(self, new_status, source, now, **extra):
        previous = self.payment_status
        self.payment_status = new_status.value
        self.updated_at = now
        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=new_status.value,
                source=source.value,
                gateway_order_id=self.gateway_order_id,
                gateway_payment_id=self.gateway_payment_id,
                changed_at=now,
                **extra,
            )
        )

    def attach_gateway_order(self, gateway_order_id, amount_minor, currency):
        if PaymentStatus(self.payment_status) in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            raise ValidationError({"payment_status": ["Order is already paid"]})

        now = datetime.now(UTC)
        self.gateway_order_id = gateway_order_id
        self.payment_method = PaymentMethod.ONLINE.value
        self.updated_at = now
        self.raise_(
            GatewayOrderCreated(
                order_id=str(self.id),
                gateway_order_id=gateway_order_id,
                amount_minor=amount_minor,
                currency=currency,
                created_at=now,
            )
        )

    def confirm_payment(self, source, gateway_payment_id, transaction_id=None) -> bool:
        """Mark the order paid unless it already is. Returns True when state changed.

        A Pending order also advances to Preparing, logged as confirmed via
        the given source.
        """
        source = PaymentSource(source)
        if PaymentStatus(self.payment_status) in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            return False

        now = datetime.now(UTC)
        self.gateway_payment_id = gateway_payment_id
        self.transaction_id = transaction_id or gateway_payment_id
        self.paid_at = now
        self._set_payment_status(PaymentStatus.PAID, source, now)

        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.change_status(OrderStatus.PREPARING.value, note=f"Payment confirmed via {source.value}")
        return True

    def fail_payment(self, source) -> bool:
        """Record a failed payment and cancel a live order. Returns True when state changed."""
        source = PaymentSource(source)
        if PaymentStatus(self.payment_status) in (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.FAILED):
            return False

        now = datetime.now(UTC)
        self._set_payment_status(PaymentStatus.FAILED, source, now)
        if not self.is_terminal:
            self.change_status(OrderStatus.CANCELLED.value, note="Payment failed")
        return True

    def record_refund(self, refund_id, amount, reason, source) -> bool:
        """Mark a paid order refunded. Returns True when state changed.

        The delivery status is unchanged; the history gets a note entry
        carrying the current status.
        """
        source = PaymentSource(source)
        if PaymentStatus(self.payment_status) != PaymentStatus.PAID:
            return False

        now = datetime.now(UTC)
        self.refund_id = refund_id
        self.refunded_amount = as_float(amount) if amount is not None else self.total
        self._set_payment_status(
            PaymentStatus.REFUNDED,
            source,
            now,
            refund_id=refund_id,
            refunded_amount=self.refunded_amount,
        )
        self._append_history(self.status, f"Refund processed: {refund_id} - {reason or 'Customer request'}", now)
        return True
