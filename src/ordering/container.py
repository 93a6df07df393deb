"""Process-scoped wiring of the ordering services.

``build_services()`` is called once at startup (``app.py``) and the result is
stored on ``app.state.services``. Tests build their own with a fake gateway
and a catalogue of their choosing.
"""

from dataclasses import dataclass

from ordering.catalogue.memory_adapter import InMemoryCatalogue, sample_menu
from ordering.catalogue.port import Catalogue
from ordering.coupon.service import CouponService
from ordering.order.service import OrderService
from ordering.payment.gateway import FakeGateway, PaymentGateway
from ordering.payment.reconciler import PaymentReconciler
from ordering.realtime.hub import EventHub
from ordering.realtime.notifier import OrderNotifier
from ordering.settings import Settings, get_settings
from ordering.utils.locks import KeyedLocks


@dataclass
class Services:
    settings: Settings
    catalogue: Catalogue
    gateway: PaymentGateway
    hub: EventHub
    locks: KeyedLocks
    orders: OrderService
    coupons: CouponService
    payments: PaymentReconciler


def build_services(
    settings: Settings | None = None,
    catalogue: Catalogue | None = None,
    gateway: PaymentGateway | None = None,
    hub: EventHub | None = None,
) -> Services:
    settings = settings or get_settings()
    catalogue = catalogue or InMemoryCatalogue(sample_menu())
    gateway = gateway or FakeGateway()
    hub = hub or EventHub()
    locks = KeyedLocks()
    notifier = OrderNotifier(hub)

    return Services(
        settings=settings,
        catalogue=catalogue,
        gateway=gateway,
        hub=hub,
        locks=locks,
        orders=OrderService(catalogue, notifier, locks),
        coupons=CouponService(catalogue, locks),
        payments=PaymentReconciler(gateway, notifier, locks, settings),
    )
