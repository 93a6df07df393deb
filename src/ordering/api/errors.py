"""Exception-to-HTTP translation for the Ordering API.

Every failure renders as ``{"error": <message>, "details": {field: [reasons]}}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import (
    Conflict,
    CouponRejected,
    Forbidden,
    GatewayError,
    InvalidSignature,
    InvalidTransition,
    ItemUnavailable,
    OrderingError,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES = {
    ItemUnavailable: 400,
    CouponRejected: 400,
    InvalidTransition: 409,
    ValidationError: 400,
    InvalidSignature: 400,
    GatewayError: 502,
    Conflict: 409,
    Forbidden: 403,
    OrderingError: 500,
    ObjectNotFoundError: 404,
}


def _details(exc) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return {str(k): [str(m) for m in (v if isinstance(v, list | tuple) else [v])] for k, v in messages.items()}
    return {}


def _message(exc) -> str:
    for attr in ("reason", "message"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value:
            return value
    details = _details(exc)
    if details:
        return next(iter(details.values()))[0]
    return str(exc) or exc.__class__.__name__


def error_body(exc) -> dict:
    return {"error": _message(exc), "details": _details(exc)}


def _handler(status_code):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=_message(exc), status=status_code)
        return JSONResponse(status_code=status_code, content=error_body(exc))

    return handle


def register_error_handlers(app: FastAPI) -> None:
    """Install Protean's handlers, then the ordering-specific mapping on top."""
    register_exception_handlers(app)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
