"""FastAPI routes for the Ordering domain — orders, coupons and payments."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Header, Query, Request

from ordering.api.dependencies import get_principal, get_services
from ordering.api.schemas import (
    CouponOverviewResponse,
    CouponPreviewResponse,
    CouponResponse,
    CreateCouponRequest,
    CreateGatewayOrderRequest,
    DailyStatsResponse,
    GatewayOrderResponse,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    PlaceOrderRequest,
    RefundRequest,
    ReorderResponse,
    TrackingResponse,
    UpdateCouponRequest,
    UpdateStatusRequest,
    ValidateCouponRequest,
    VerifyPaymentRequest,
    WebhookAckResponse,
)
from ordering.container import Services
from ordering.order.order import OrderStatus
from ordering.principal import Permission, Principal
from ordering.projections.daily_order_stats import stats_for

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.orders.place_order(
        principal,
        customer=body.customer.model_dump(),
        items=[item.model_dump() for item in body.items],
        payment_method=body.payment_method.value,
        coupon_code=body.coupon_code,
        special_instructions=body.special_instructions,
    )
    return OrderResponse.from_order(order)


@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    status: OrderStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderListResponse:
    orders, total = services.orders.list_orders(
        principal,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderResponse.from_order(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
    )


@order_router.get("/track/{order_number}", response_model=TrackingResponse)
async def track_order(order_number: str, services: Services = Depends(get_services)) -> TrackingResponse:
    return TrackingResponse.from_order(services.orders.track_by_number(order_number))


@order_router.get("/stats/daily", response_model=DailyStatsResponse)
async def daily_stats(
    date: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    principal: Principal = Depends(get_principal),
) -> DailyStatsResponse:
    principal.require(Permission.VIEW_ANALYTICS)
    record = stats_for(date or datetime.now(UTC).date().isoformat())
    return DailyStatsResponse(
        date=record.date,
        orders_placed=record.orders_placed or 0,
        orders_delivered=record.orders_delivered or 0,
        orders_cancelled=record.orders_cancelled or 0,
        orders_refunded=record.orders_refunded or 0,
        gross_order_value=record.gross_order_value or 0.0,
        revenue=record.revenue or 0.0,
        discounts_granted=record.discounts_granted or 0.0,
        refunds_issued=record.refunds_issued or 0.0,
    )


@order_router.get("/stats/summary", response_model=OrderSummaryResponse)
async def order_summary(
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderSummaryResponse:
    return OrderSummaryResponse(**services.orders.summary(principal))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderResponse:
    return OrderResponse.from_order(services.orders.get(principal, order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.orders.update_status(principal, order_id, body.status.value, note=body.note)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/reorder", response_model=ReorderResponse)
async def reorder(
    order_id: str,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> ReorderResponse:
    """Reprice a past order's items; the client checks them out as a new order."""
    return ReorderResponse.from_quote(services.orders.reorder(principal, order_id))


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("/validate", response_model=CouponPreviewResponse)
async def validate_coupon(
    body: ValidateCouponRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponPreviewResponse:
    preview = services.coupons.preview(principal, body.code, [item.model_dump() for item in body.items])
    return CouponPreviewResponse(**preview)


@coupon_router.post("", status_code=201, response_model=CouponResponse)
async def create_coupon(
    body: CreateCouponRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponResponse:
    coupon = services.coupons.create(principal, **body.model_dump())
    return CouponResponse.from_coupon(coupon)


@coupon_router.get("", response_model=list[CouponResponse])
async def list_coupons(
    active_only: bool = False,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> list[CouponResponse]:
    return [CouponResponse.from_coupon(c) for c in services.coupons.list_coupons(principal, active_only=active_only)]


@coupon_router.get("/stats/overview", response_model=CouponOverviewResponse)
async def coupon_overview(
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponOverviewResponse:
    return CouponOverviewResponse.from_overview(services.coupons.overview(principal))


@coupon_router.get("/{code}", response_model=CouponResponse)
async def get_coupon(
    code: str,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponResponse:
    return CouponResponse.from_coupon(services.coupons.get(principal, code))


@coupon_router.put("/{code}", response_model=CouponResponse)
async def update_coupon(
    code: str,
    body: UpdateCouponRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponResponse:
    coupon = services.coupons.update(principal, code, **body.model_dump(exclude_unset=True))
    return CouponResponse.from_coupon(coupon)


@coupon_router.post("/{code}/toggle", response_model=CouponResponse)
async def toggle_coupon(
    code: str,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> CouponResponse:
    return CouponResponse.from_coupon(services.coupons.toggle(principal, code))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/create-order", response_model=GatewayOrderResponse)
async def create_gateway_order(
    body: CreateGatewayOrderRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> GatewayOrderResponse:
    return GatewayOrderResponse(**services.payments.create_gateway_order(principal, body.order_id))


@payment_router.post("/verify", response_model=OrderResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.payments.verify_client_payment(body.gateway_order_id, body.gateway_payment_id, body.signature)
    return OrderResponse.from_order(order)


@payment_router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
    services: Services = Depends(get_services),
) -> WebhookAckResponse:
    """Provider callback. The signature covers the raw body, so it is read unparsed."""
    raw_body = await request.body()
    return WebhookAckResponse(**services.payments.handle_webhook(raw_body, x_gateway_signature))


@payment_router.post("/refund", response_model=OrderResponse)
async def refund_payment(
    body: RefundRequest,
    principal: Principal = Depends(get_principal),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.payments.refund(principal, body.order_id, amount=body.amount, reason=body.reason)
    return OrderResponse.from_order(order)
