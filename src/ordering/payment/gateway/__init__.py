"""Payment gateway adapters."""

from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import GatewayOrder, GatewayRefund, PaymentGateway

__all__ = ["FakeGateway", "GatewayOrder", "GatewayRefund", "PaymentGateway"]
