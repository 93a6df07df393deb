"""SliceStream FastAPI application.

Serves the ordering core over HTTP and a WebSocket. Commands are processed
synchronously within each request, inside the ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the environment (and the log renderer).
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.domain import ordering
from ordering.utils.logging import bind_request_context, clear_request_context, configure_logging

configure_logging()
ordering.init()

from ordering.api.errors import register_error_handlers  # noqa: E402
from ordering.api.routes import coupon_router, order_router, payment_router  # noqa: E402
from ordering.container import build_services  # noqa: E402
from ordering.coupon.defaults import seed_default_coupons  # noqa: E402
from ordering.realtime.websocket import realtime_router  # noqa: E402

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="SliceStream API",
    description="Pizza ordering: orders, coupons, payments and live tracking",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.services = build_services()

with ordering.domain_context():
    seed_default_coupons()


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context and bind request details for logging."""
    bind_request_context(
        path=request.url.path,
        method=request.method,
        principal_id=request.headers.get("x-principal-id"),
    )
    try:
        with ordering.domain_context():
            response = await call_next(request)
        return response
    finally:
        clear_request_context()


register_error_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(order_router)
app.include_router(coupon_router)
app.include_router(payment_router)
app.include_router(realtime_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    hub = app.state.services.hub
    return JSONResponse(
        content={
            "status": "ok",
            "domain": ordering.name,
            "realtime": hub.stats,
        }
    )
