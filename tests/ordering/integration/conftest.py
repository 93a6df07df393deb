import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from ordering.api.errors import register_error_handlers
from ordering.api.routes import coupon_router, order_router, payment_router
from ordering.domain import ordering
from ordering.realtime.websocket import realtime_router


@pytest.fixture()
def app(services):
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with ordering.domain_context():
            return await call_next(request)

    register_error_handlers(app)
    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(payment_router)
    app.include_router(realtime_router)
    app.state.services = services
    return app


@pytest.fixture()
def client(app):
    return TestClient(app)


ADMIN_HEADERS = {
    "X-Principal-Id": "admin-1",
    "X-Principal-Role": "admin",
    "X-Principal-Permissions": "manage_orders,view_analytics,manage_coupons",
}
CUSTOMER_HEADERS = {"X-Principal-Id": "cust-001", "X-Principal-Role": "customer"}


@pytest.fixture()
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture()
def customer_headers():
    return dict(CUSTOMER_HEADERS)


@pytest.fixture()
def place_via_api(client, customer_headers, customer_info):
    def _place(items=None, headers=None, **extra):
        body = {
            "customer": customer_info,
            "items": items or [{"product_id": "margherita", "quantity": 2}],
            **extra,
        }
        return client.post("/orders", json=body, headers=customer_headers if headers is None else headers)

    return _place
