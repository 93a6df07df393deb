"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements so the reconciler can
run against the fake in development and tests and a real provider in
production. Amounts cross this boundary in minor units (cents).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayOrder:
    gateway_order_id: str
    amount: int
    currency: str
    receipt: str


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: str
    status: str
    amount: int


class PaymentGateway(ABC):
    """Abstract payment gateway interface.

    Adapters raise ``ordering.errors.GatewayError`` when the provider call
    fails; they never retry.
    """

    @abstractmethod
    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewayOrder:
        """Open a provider-side order the customer will pay against."""
        ...

    @abstractmethod
    def refund(self, gateway_payment_id: str, amount_minor: int) -> GatewayRefund:
        """Refund (part of) a captured payment."""
        ...
