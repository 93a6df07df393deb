"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Shape is checked here; business rules are the
core's job.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from ordering.order.order import OrderStatus, PaymentMethod


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CustomerSchema(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=7, max_length=20)
    email: str | None = Field(default=None, max_length=254)
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=3, max_length=20)
    delivery_instructions: str | None = Field(default=None, max_length=300)


class OrderItemSchema(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1, le=50)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer: CustomerSchema
    items: list[OrderItemSchema] = Field(min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    coupon_code: str | None = Field(default=None, max_length=20)
    special_instructions: str | None = Field(default=None, max_length=300)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer": {
                        "name": "Asha Rao",
                        "phone": "555-0100",
                        "email": "asha@example.com",
                        "street": "12 Elm St",
                        "city": "Springfield",
                        "state": "IL",
                        "zip_code": "62701",
                    },
                    "items": [{"product_id": "margherita", "quantity": 2}],
                    "payment_method": "Cash on Delivery",
                    "coupon_code": "WELCOME10",
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    note: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Coupon Request Schemas
# ---------------------------------------------------------------------------
class ValidateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    items: list[OrderItemSchema] = Field(min_length=1)


class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=3, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    kind: Literal["percentage", "fixed"]
    value: float = Field(ge=0)
    min_order_amount: float = Field(default=0.0, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = Field(default=None, ge=1)
    applicable_categories: list[Literal["Veg", "Non-Veg", "Vegan"]] = Field(default_factory=list)
    applicable_products: list[str] = Field(default_factory=list)
    excluded_products: list[str] = Field(default_factory=list)
    first_time_only: bool = False

    @model_validator(mode="after")
    def _window_ordered(self):
        if self.valid_from >= self.valid_until:
            raise ValueError("valid_from must be before valid_until")
        return self


class UpdateCouponRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    kind: Literal["percentage", "fixed"] | None = None
    value: float | None = Field(default=None, ge=0)
    min_order_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=1)
    applicable_categories: list[Literal["Veg", "Non-Veg", "Vegan"]] | None = None
    applicable_products: list[str] | None = None
    excluded_products: list[str] | None = None
    first_time_only: bool | None = None


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class CreateGatewayOrderRequest(BaseModel):
    order_id: str


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str = Field(min_length=1)
    gateway_payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class RefundRequest(BaseModel):
    order_id: str
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class LineItemResponse(BaseModel):
    product_id: str
    name: str
    category: str | None = None
    unit_price: float
    quantity: int
    line_total: float


class StatusEntryResponse(BaseModel):
    status: str
    timestamp: datetime
    note: str | None = None


class DiscountResponse(BaseModel):
    coupon_code: str
    coupon_name: str | None = None
    kind: str
    raw_value: float
    applied_amount: float


class PaymentRefResponse(BaseModel):
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    transaction_id: str | None = None
    paid_at: datetime | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str | None = None
    customer: CustomerSchema
    items: list[LineItemResponse]
    subtotal: float
    discount: DiscountResponse | None = None
    delivery_fee: float
    tax: float
    total: float
    status: str
    status_history: list[StatusEntryResponse]
    payment_method: str
    payment_status: str
    payment_ref: PaymentRefResponse | None = None
    refunded_amount: float | None = None
    refund_id: str | None = None
    estimated_delivery_at: datetime | None = None
    actual_delivered_at: datetime | None = None
    special_instructions: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        ref = order.payment_ref
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id) if order.customer_id else None,
            customer=CustomerSchema(**order.customer.to_dict()),
            items=[
                LineItemResponse(
                    product_id=str(item.product_id),
                    name=item.name,
                    category=item.category,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    line_total=item.line_total,
                )
                for item in order.lines
            ],
            subtotal=order.subtotal,
            discount=DiscountResponse(**order.discount.to_dict()) if order.discount else None,
            delivery_fee=order.delivery_fee,
            tax=order.tax,
            total=order.total,
            status=order.status,
            status_history=[
                StatusEntryResponse(status=entry.status, timestamp=entry.timestamp, note=entry.note)
                for entry in order.timeline
            ],
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            payment_ref=PaymentRefResponse(
                gateway_order_id=ref.gateway_order_id,
                gateway_payment_id=ref.gateway_payment_id,
                transaction_id=ref.transaction_id,
                paid_at=ref.paid_at,
            )
            if ref
            else None,
            refunded_amount=order.refunded_amount,
            refund_id=order.refund_id,
            estimated_delivery_at=order.estimated_delivery_at,
            actual_delivered_at=order.actual_delivered_at,
            special_instructions=order.special_instructions,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int


class TrackingResponse(BaseModel):
    """Public view of an order; no contact details."""

    order_number: str
    status: str
    payment_status: str
    total: float
    status_history: list[StatusEntryResponse]
    estimated_delivery_at: datetime | None = None
    actual_delivered_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "TrackingResponse":
        return cls(
            order_number=order.order_number,
            status=order.status,
            payment_status=order.payment_status,
            total=order.total,
            status_history=[
                StatusEntryResponse(status=entry.status, timestamp=entry.timestamp, note=entry.note)
                for entry in order.timeline
            ],
            estimated_delivery_at=order.estimated_delivery_at,
            actual_delivered_at=order.actual_delivered_at,
        )


class CouponResponse(BaseModel):
    code: str
    name: str
    description: str | None = None
    kind: str
    value: float
    min_order_amount: float
    max_discount_amount: float | None = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    used_count: int
    remaining_usage: int | None = None
    applicable_categories: list[str]
    applicable_products: list[str]
    excluded_products: list[str]
    first_time_only: bool
    is_active: bool
    is_expired: bool

    @classmethod
    def from_coupon(cls, coupon) -> "CouponResponse":
        return cls(
            code=coupon.code,
            name=coupon.name,
            description=coupon.description,
            kind=coupon.kind,
            value=coupon.value,
            min_order_amount=coupon.min_order_amount or 0.0,
            max_discount_amount=coupon.max_discount_amount,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count or 0,
            remaining_usage=coupon.remaining_usage,
            applicable_categories=coupon.categories,
            applicable_products=coupon.products,
            excluded_products=coupon.excluded,
            first_time_only=bool(coupon.first_time_only),
            is_active=bool(coupon.is_active),
            is_expired=coupon.is_expired(),
        )


class CouponPreviewResponse(BaseModel):
    code: str
    name: str
    kind: str
    value: float
    subtotal: float
    discount: float
    discounted_subtotal: float


class GatewayOrderResponse(BaseModel):
    order_id: str
    order_number: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


class WebhookAckResponse(BaseModel):
    status: str = "ok"
    event: str | None = None
    applied: bool = False


class DailyStatsResponse(BaseModel):
    date: str
    orders_placed: int
    orders_delivered: int
    orders_cancelled: int
    orders_refunded: int
    gross_order_value: float
    revenue: float
    discounts_granted: float
    refunds_issued: float


class ReorderResponse(BaseModel):
    original_order_id: str
    items: list[LineItemResponse]
    unavailable_product_ids: list[str] = Field(default_factory=list)
    subtotal: float
    delivery_fee: float
    tax: float
    total: float

    @classmethod
    def from_quote(cls, quote) -> "ReorderResponse":
        return cls(
            original_order_id=quote.original_order_id,
            items=[
                LineItemResponse(
                    product_id=line.product_id,
                    name=line.name,
                    category=line.category,
                    unit_price=float(line.unit_price),
                    quantity=line.quantity,
                    line_total=float(line.line_total),
                )
                for line in quote.lines
            ],
            unavailable_product_ids=list(quote.unavailable),
            subtotal=float(quote.pricing.subtotal),
            delivery_fee=float(quote.pricing.delivery_fee),
            tax=float(quote.pricing.tax),
            total=float(quote.pricing.total),
        )


class PeriodSummary(BaseModel):
    orders: int
    revenue: float


class OrderSummaryResponse(BaseModel):
    today: PeriodSummary
    total: PeriodSummary
    by_status: dict[str, int]


class RecentCouponResponse(BaseModel):
    code: str
    name: str
    used_count: int
    is_active: bool
    valid_until: datetime


class CouponOverviewResponse(BaseModel):
    total_coupons: int
    active_coupons: int
    expired_coupons: int
    total_usage: int
    recent_coupons: list[RecentCouponResponse]

    @classmethod
    def from_overview(cls, overview) -> "CouponOverviewResponse":
        recent = [
            RecentCouponResponse(
                code=c.code,
                name=c.name,
                used_count=c.used_count or 0,
                is_active=bool(c.is_active),
                valid_until=c.valid_until,
            )
            for c in overview["recent_coupons"]
        ]
        return cls(**{**overview, "recent_coupons": recent})


class ErrorResponse(BaseModel):
    error: str
    details: dict[str, list[str]] = Field(default_factory=dict)
