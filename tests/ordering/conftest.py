from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture

from ordering.catalogue.memory_adapter import InMemoryCatalogue
from ordering.catalogue.port import ProductInfo
from ordering.container import build_services
from ordering.payment.gateway import FakeGateway
from ordering.principal import Principal


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        from protean.utils.globals import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalogue():
    return InMemoryCatalogue(
        [
            ProductInfo(id="margherita", name="Margherita", price=10.00, is_available=True, category="Veg"),
            ProductInfo(id="pepperoni", name="Pepperoni", price=15.99, is_available=True, category="Non-Veg"),
            ProductInfo(id="vegan-garden", name="Vegan Garden", price=7.50, is_available=True, category="Vegan"),
            ProductInfo(id="seasonal", name="Seasonal Special", price=18.00, is_available=False, category="Veg"),
        ]
    )


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def services(catalogue, gateway):
    return build_services(catalogue=catalogue, gateway=gateway)


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------
@pytest.fixture()
def admin():
    return Principal.admin("admin-1")


@pytest.fixture()
def customer():
    return Principal.customer("cust-001")


@pytest.fixture()
def anonymous():
    return Principal.anonymous()


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer_info():
    return {
        "name": "Asha Rao",
        "phone": "555-0100",
        "email": "asha@example.com",
        "street": "12 Elm St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
    }


@pytest.fixture()
def coupon_terms():
    """WELCOME10-style terms, open for a day either side of now."""
    now = datetime.now(UTC)
    return {
        "code": "welcome10",
        "name": "Welcome Discount",
        "kind": "percentage",
        "value": 10.0,
        "min_order_amount": 20.0,
        "max_discount_amount": 10.0,
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=1),
        "usage_limit": 1000,
    }
