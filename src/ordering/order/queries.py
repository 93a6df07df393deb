"""Order lookups shared by handlers and services."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.coupon.coupon import as_utc
from ordering.errors import NotFound
from ordering.order.order import Order, OrderStatus
from ordering.utils.money import as_float, to_decimal


def _first(**filters) -> Order | None:
    found = current_domain.repository_for(Order)._dao.query.filter(**filters).all().items
    return found[0] if found else None


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise NotFound(f"Order {order_id} not found")


def find_by_number(order_number) -> Order | None:
    return _first(order_number=order_number)


def find_by_gateway_order(gateway_order_id) -> Order | None:
    return _first(gateway_order_id=gateway_order_id)


def find_by_gateway_payment(gateway_payment_id) -> Order | None:
    return _first(gateway_payment_id=gateway_payment_id)


def orders_of(customer_id) -> list[Order]:
    return current_domain.repository_for(Order)._dao.query.filter(customer_id=str(customer_id)).all().items


def is_first_order(customer_id) -> bool | None:
    """True when the customer has no order that was not cancelled; None for anonymous buyers."""
    if not customer_id:
        return None
    return not any(order.status != OrderStatus.CANCELLED.value for order in orders_of(customer_id))


def list_orders(status=None, page=1, limit=20, customer_id=None) -> tuple[list[Order], int]:
    """Newest first; returns the page and the total match count."""
    query = current_domain.repository_for(Order)._dao.query
    if status:
        query = query.filter(status=status)
    if customer_id:
        query = query.filter(customer_id=str(customer_id))
    result = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return result.items, result.total


def order_summary(today) -> dict:
    """Order counts by status plus delivered revenue, overall and for ``today`` (a UTC date)."""
    orders = current_domain.repository_for(Order)._dao.query.limit(None).all().items
    todays = [order for order in orders if order.created_at and as_utc(order.created_at).date() == today]

    def revenue(selection):
        return as_float(sum(to_decimal(o.total) for o in selection if o.status == OrderStatus.DELIVERED.value))

    return {
        "today": {"orders": len(todays), "revenue": revenue(todays)},
        "total": {"orders": len(orders), "revenue": revenue(orders)},
        "by_status": {
            status.value: sum(1 for order in orders if order.status == status.value) for status in OrderStatus
        },
    }
