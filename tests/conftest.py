"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date

import pytest

from telemed.services.adapters import AdapterMode, LocalStore, create_local_store
from telemed.services.entitlement import (
    BillingEventIngestor,
    HouseholdService,
    OnboardingOrchestrator,
    ReconciliationEngine,
)
from tests.fixtures.constants import HOLDER_TAX_ID, TODAY
from tests.fixtures.fakes import FakeBillingGateway, FakeIdentityGateway, FakeRegistryGateway


@pytest.fixture
def billing() -> FakeBillingGateway:
    return FakeBillingGateway()


@pytest.fixture
def registry() -> FakeRegistryGateway:
    return FakeRegistryGateway()


@pytest.fixture
def identity() -> FakeIdentityGateway:
    return FakeIdentityGateway()


@pytest.fixture
def store() -> LocalStore:
    """Demo-mode local store with the default plan catalog."""
    return create_local_store(AdapterMode.DEMO, seed_plans=True)


@pytest.fixture
def engine(billing, registry, store) -> ReconciliationEngine:
    return ReconciliationEngine(billing, registry, store, today=lambda: TODAY)


@pytest.fixture
def orchestrator(engine, identity) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(engine, identity)


@pytest.fixture
def ingestor(billing, registry, store) -> BillingEventIngestor:
    return BillingEventIngestor(billing, registry, store)


@pytest.fixture
def household(registry, store) -> HouseholdService:
    return HouseholdService(registry, store)


@pytest.fixture
def paying_holder(billing):
    """Billing customer with an active monthly subscription paid this period."""
    billing.add_customer(
        "cus_001",
        HOLDER_TAX_ID,
        name="Maria Souza",
        email="maria@example.com",
        mobile_phone="11987654321",
        postal_code="01001000",
    )
    billing.add_subscription(
        "cus_001",
        "sub_001",
        date_created=date(2026, 1, 10),
        external_reference="PLAN-INDIVIDUAL-MONTHLY",
    )
    billing.add_payment("sub_001", "pay_001", "CONFIRMED", date(2026, 10, 10))
    return billing.customers["cus_001"]


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
