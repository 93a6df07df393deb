"""Order application service — checkout, status updates and order reads.

Wraps the order commands with what a handler cannot do on its own: catalogue
resolution before the unit of work, keyed locks around it, and realtime
notification after it commits.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from ordering.catalogue.port import Catalogue
from ordering.catalogue.resolve import resolve_lines
from ordering.coupon.coupon import normalize_code
from ordering.errors import Forbidden, NotFound
from ordering.order.creation import PlaceOrder, encode_lines
from ordering.order.order import Order, PaymentMethod
from ordering.order.queries import find_by_number, list_orders, load_order, order_summary
from ordering.order.reorder import ReorderQuote, quote_reorder
from ordering.order.status import UpdateOrderStatus
from ordering.principal import Permission, Principal
from ordering.realtime.notifier import OrderNotifier
from ordering.settings import get_settings
from ordering.utils.locks import KeyedLocks, coupon_key, order_key

logger = structlog.get_logger(__name__)


class OrderService:
    def __init__(self, catalogue: Catalogue, notifier: OrderNotifier, locks: KeyedLocks):
        self.catalogue = catalogue
        self.notifier = notifier
        self.locks = locks

    def place_order(
        self,
        principal: Principal,
        customer: dict,
        items: list[dict],
        payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value,
        coupon_code: str | None = None,
        special_instructions: str | None = None,
    ) -> Order:
        """Check out ``items`` for ``principal``; returns the committed Pending order."""
        lines = resolve_lines(self.catalogue, items)
        code = normalize_code(coupon_code) if coupon_code else None
        customer_id = principal.id if principal.is_customer else None

        with self.locks.hold(coupon_key(code) if code else None):
            order_id = current_domain.process(
                PlaceOrder(
                    customer_id=customer_id,
                    customer=json.dumps(customer),
                    lines=encode_lines(lines),
                    payment_method=payment_method,
                    coupon_code=code,
                    special_instructions=special_instructions,
                ),
                asynchronous=False,
            )

        order = load_order(order_id)
        self.notifier.order_created(order)
        return order

    def update_status(self, principal: Principal, order_id, status: str, note: str | None = None) -> Order:
        principal.require(Permission.MANAGE_ORDERS)
        with self.locks.hold(order_key(order_id)):
            current_domain.process(
                UpdateOrderStatus(order_id=str(order_id), status=status, note=note),
                asynchronous=False,
            )

        order = load_order(order_id)
        logger.info("order_status_updated", order_id=str(order_id), status=order.status, updated_by=principal.id)
        self.notifier.status_changed(order)
        return order

    def get(self, principal: Principal, order_id) -> Order:
        order = load_order(order_id)
        if principal.is_admin or principal.owns(order.customer_id):
            return order
        raise Forbidden("Not allowed to view this order")

    def track_by_number(self, order_number: str) -> Order:
        order = find_by_number(order_number)
        if order is None:
            raise NotFound(f"Order {order_number} not found")
        return order

    def list_orders(self, principal: Principal, status=None, page=1, limit=20) -> tuple[list[Order], int]:
        """Admins see every order; customers see their own history."""
        if principal.is_admin:
            principal.require(Permission.MANAGE_ORDERS)
            return list_orders(status=status, page=page, limit=limit)
        if principal.is_customer:
            return list_orders(status=status, page=page, limit=limit, customer_id=principal.id)
        raise Forbidden("Sign in to list orders")

    def reorder(self, principal: Principal, order_id) -> ReorderQuote:
        """Quote a past order again at today's prices. Only its customer may ask."""
        order = load_order(order_id)
        if not principal.owns(order.customer_id):
            raise Forbidden("Only the customer who placed this order can reorder it")

        settings = get_settings()
        quote = quote_reorder(self.catalogue, order, settings.delivery_fee, settings.tax_rate)
        logger.info(
            "reorder_quoted",
            order_id=str(order.id),
            lines=len(quote.lines),
            unavailable=list(quote.unavailable),
        )
        return quote

    def summary(self, principal: Principal, today=None) -> dict:
        principal.require(Permission.VIEW_ANALYTICS)
        return order_summary(today or datetime.now(UTC).date())
