"""Configurable fake payment gateway for development and testing.

No external calls. It can be told to fail, records every call, and hands out
ids shaped like the provider's (``order_...``, ``rfnd_...``).
"""

from uuid import uuid4

from ordering.errors import GatewayError
from ordering.payment.gateway.port import GatewayOrder, GatewayRefund, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewayOrder:
        self.calls.append(
            {
                "method": "create_order",
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
        return GatewayOrder(
            gateway_order_id=f"order_{uuid4().hex[:14]}",
            amount=amount_minor,
            currency=currency,
            receipt=receipt,
        )

    def refund(self, gateway_payment_id: str, amount_minor: int) -> GatewayRefund:
        self.calls.append(
            {
                "method": "refund",
                "gateway_payment_id": gateway_payment_id,
                "amount": amount_minor,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
        return GatewayRefund(
            refund_id=f"rfnd_{uuid4().hex[:14]}",
            status="processed",
            amount=amount_minor,
        )
