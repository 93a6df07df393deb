"""Error taxonomy for the ordering core.

Business-rule rejections extend Protean's ``ValidationError`` so they carry
the usual ``{"field": ["reason"]}`` messages; lookups that miss extend
``ObjectNotFoundError``. Everything else derives from ``OrderingError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class OrderingError(Exception):
    """Base class for non-validation failures raised by the ordering core."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ItemUnavailable(ValidationError):
    """A product referenced at checkout vanished or was disabled."""

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__({"items": [reason]})


class CouponRejected(ValidationError):
    """The coupon code is unknown or failed one of the discount checks."""

    def __init__(self, code: str | None, reason: str):
        self.code = code
        self.reason = reason
        super().__init__({"coupon_code": [reason]})


class InvalidTransition(ValidationError):
    """A status change outside the order state machine."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


class NotFound(ObjectNotFoundError):
    """Unknown order or coupon."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidSignature(OrderingError):
    """A payment signature did not match; treated as a possible tampering attempt."""


class GatewayError(OrderingError):
    """The payment provider call failed. Never retried internally."""


class Conflict(OrderingError):
    """Concurrent mutation or identifier collision; retry the whole operation."""


class Forbidden(OrderingError):
    """The principal may not perform this operation."""
