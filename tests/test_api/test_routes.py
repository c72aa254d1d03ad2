"""
API Routes Tests.
Exercises the HTTP surface against in-memory gateways and the demo store.
"""

from datetime import date

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from telemed.api import deps
from telemed.api.config import Settings, get_settings
from telemed.api.main import app
from telemed.core.enums import Relation, SubjectStatus
from telemed.gateways.base import UpstreamRejectedError, UpstreamUnavailableError
from telemed.models.beneficiary import PlanDetails
from telemed.models.subject import Subject
from tests.fixtures.constants import DEPENDENT_TAX_ID, HOLDER_TAX_ID

HOLDER_TOKEN = "token-holder"
WEBHOOK_TOKEN = "whsec-test"


@pytest.fixture
def client(engine, orchestrator, ingestor, household, registry, store, identity):
    """Test client wired to fakes. The lifespan is not run."""
    identity.tokens[HOLDER_TOKEN] = HOLDER_TAX_ID
    overrides = {
        deps.get_engine: lambda: engine,
        deps.get_orchestrator: lambda: orchestrator,
        deps.get_ingestor: lambda: ingestor,
        deps.get_household: lambda: household,
        deps.get_registry: lambda: registry,
        deps.get_store: lambda: store,
        deps.get_identity: lambda: identity,
        get_settings: lambda: Settings(_env_file=None, ASAAS_WEBHOOK_TOKEN=WEBHOOK_TOKEN),
    }
    app.dependency_overrides.update(overrides)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {HOLDER_TOKEN}"}


@pytest.mark.api
class TestServiceEndpoints:
    """Test root and health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Telemedicine Entitlement API"


@pytest.mark.api
class TestFirstAccessEndpoints:
    """Test first-access validation and completion."""

    def test_validate_paying_subscriber(self, client, paying_holder):
        response = client.post(
            "/api/v1/first-access/validate", json={"tax_id": "111.222.333-44"}
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["state"] == "needs-beneficiary-registration"
        assert body["can_complete_first_access"] is True
        assert body["paid_through"] == "2026-11-10"

    def test_validate_unknown(self, client):
        response = client.post("/api/v1/first-access/validate", json={"tax_id": HOLDER_TAX_ID})

        assert response.json()["state"] == "none"
        assert response.json()["can_complete_first_access"] is False

    def test_validate_malformed_tax_id(self, client):
        response = client.post("/api/v1/first-access/validate", json={"tax_id": "abc.-"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_complete_first_access(self, client, paying_holder, identity):
        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["tax_id"] == HOLDER_TAX_ID
        assert identity.accounts[HOLDER_TAX_ID]["password"] == body["temporary_password"]

    def test_second_attempt_conflicts(self, client, paying_holder):
        client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "already-completed"

    def test_not_entitled(self, client):
        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"]["code"] == "not-entitled"

    def test_payment_pending(self, client, billing):
        billing.add_customer("cus_1", HOLDER_TAX_ID, name="Maria", email="m@example.com")
        billing.add_subscription("cus_1", "sub_1")
        billing.add_payment("sub_1", "pay_1", "PENDING", date(2026, 10, 10))

        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED

    def test_missing_fields_are_listed(self, client, billing):
        billing.add_customer("cus_1", HOLDER_TAX_ID)
        billing.add_subscription("cus_1", "sub_1")
        billing.add_payment("sub_1", "pay_1", "CONFIRMED", date(2026, 10, 1))

        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["missing_fields"] == ["name", "email"]

    def test_overrides_complete_the_profile(self, client, billing):
        billing.add_customer("cus_1", HOLDER_TAX_ID)
        billing.add_subscription("cus_1", "sub_1")
        billing.add_payment("sub_1", "pay_1", "CONFIRMED", date(2026, 10, 1))

        response = client.post(
            "/api/v1/first-access",
            json={
                "tax_id": HOLDER_TAX_ID,
                "overrides": {"name": "Maria", "email": "maria@example.com"},
            },
        )

        assert response.status_code == status.HTTP_201_CREATED

    def test_registry_rejection(self, client, paying_holder, registry):
        registry.fail_with["create"] = UpstreamRejectedError("CPF inválido")

        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["message"] == "CPF inválido"

    def test_upstream_unavailable(self, client, billing):
        billing.fail_with["find_customer_by_tax_id"] = UpstreamUnavailableError("down")

        response = client.post("/api/v1/first-access", json={"tax_id": HOLDER_TAX_ID})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.api
class TestEntitlementEndpoint:
    """Test the authenticated entitlement view."""

    def test_requires_bearer_token(self, client):
        response = client.get("/api/v1/entitlement/me")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_rejects_unknown_token(self, client):
        response = client.get(
            "/api/v1/entitlement/me", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_identity_outage(self, client, identity, auth_headers):
        identity.fail_with["verify_token"] = UpstreamUnavailableError("down")

        response = client.get("/api/v1/entitlement/me", headers=auth_headers)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

    def test_active_subscriber(self, client, paying_holder, registry, auth_headers):
        registry.add_record(HOLDER_TAX_ID, "ben-1")

        response = client.get("/api/v1/entitlement/me", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["state"] == "active"
        assert body["beneficiary_uuid"] == "ben-1"
        assert body["subscription_id"] == "sub_001"


@pytest.mark.api
class TestBillingWebhook:
    """Test webhook authentication and acknowledgement."""

    def test_bad_token_is_rejected(self, client):
        response = client.post(
            "/api/v1/webhooks/billing",
            json={"event": "PAYMENT_OVERDUE"},
            headers={"asaas-access-token": "wrong"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_unhandled_event_is_acknowledged(self, client):
        response = client.post(
            "/api/v1/webhooks/billing",
            json={"event": "PAYMENT_CREATED", "payment": {"id": "pay_1"}},
            headers={"asaas-access-token": WEBHOOK_TOKEN},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["outcome"] == "ignored"

    def test_non_json_body_is_acknowledged(self, client):
        response = client.post(
            "/api/v1/webhooks/billing",
            content=b"not json",
            headers={"asaas-access-token": WEBHOOK_TOKEN},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["received"] is True

    def test_overdue_suspends_holder(self, client, store, registry):
        store.subjects.seed_demo_data(
            [
                Subject(
                    tax_id=HOLDER_TAX_ID,
                    status=SubjectStatus.ACTIVE,
                    billing_customer_id="cus_001",
                    registry_uuid="ben-holder",
                )
            ]
        )
        registry.add_record(HOLDER_TAX_ID, "ben-holder")

        response = client.post(
            "/api/v1/webhooks/billing",
            json={
                "id": "evt_1",
                "event": "PAYMENT_OVERDUE",
                "payment": {"id": "pay_1", "customer": "cus_001", "subscription": "sub_001"},
            },
            headers={"asaas-access-token": WEBHOOK_TOKEN},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["outcome"] == "applied"
        assert registry.count("deactivate") == 1


@pytest.mark.api
class TestSpecialtiesEndpoint:
    """Test specialty listing and access scoping."""

    def test_lists_own_specialties(self, client, registry, auth_headers):
        registry.add_record(
            HOLDER_TAX_ID,
            "ben-1",
            specialties=[{"uuid": "s1", "name": "Clinico"}],
            plans=[{"plan": {"uuid": "p1"}}],
        )
        registry.plans["p1"] = PlanDetails(
            uuid="p1", specialties=[{"id": "s2", "name": "Pediatria"}]
        )

        response = client.get(
            f"/api/v1/beneficiaries/{HOLDER_TAX_ID}/specialties", headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        specialties = response.json()["specialties"]
        assert [s["uuid"] for s in specialties] == ["s1", "s2"]
        assert specialties[1]["source"] == "plan"

    def test_stranger_gets_not_found(self, client, registry, auth_headers):
        registry.add_record(DEPENDENT_TAX_ID, "ben-2")

        response = client.get(
            f"/api/v1/beneficiaries/{DEPENDENT_TAX_ID}/specialties", headers=auth_headers
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_registry_outage(self, client, registry, auth_headers):
        registry.fail_with["find_by_tax_id"] = UpstreamUnavailableError("down")

        response = client.get(
            f"/api/v1/beneficiaries/{HOLDER_TAX_ID}/specialties", headers=auth_headers
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.api
class TestDependentEndpoints:
    """Test household management endpoints."""

    @pytest.fixture
    def active_holder(self, store, registry):
        store.subjects.seed_demo_data(
            [
                Subject(
                    tax_id=HOLDER_TAX_ID,
                    name="Maria",
                    status=SubjectStatus.ACTIVE,
                    registry_uuid="ben-holder",
                )
            ]
        )
        registry.add_record(HOLDER_TAX_ID, "ben-holder")

    def test_add_and_list(self, client, active_holder, auth_headers):
        response = client.post(
            "/api/v1/dependents",
            json={"tax_id": DEPENDENT_TAX_ID, "name": "Joao", "kinship": "son"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["relation"] == Relation.DEPENDENT.value
        assert response.json()["holder_tax_id"] == HOLDER_TAX_ID

        listed = client.get("/api/v1/dependents", headers=auth_headers).json()
        assert [d["tax_id"] for d in listed] == [DEPENDENT_TAX_ID]

    def test_add_without_holder_record(self, client, auth_headers):
        response = client.post(
            "/api/v1/dependents",
            json={"tax_id": DEPENDENT_TAX_ID, "name": "Joao"},
            headers=auth_headers,
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_registry_rejection_reports_attempts(
        self, client, registry, active_holder, auth_headers
    ):
        registry.reject_updates.append(UpstreamRejectedError("Nome inválido"))

        response = client.patch(
            f"/api/v1/dependents/{HOLDER_TAX_ID}", json={"name": "M"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        detail = response.json()["detail"]
        assert detail["message"] == "Nome inválido"
        assert detail["attempts"][0]["strategy"] == "full_payload"

    def test_update_own_profile(self, client, registry, active_holder, auth_headers):
        response = client.patch(
            f"/api/v1/dependents/{HOLDER_TAX_ID}",
            json={"phone": "11988887777"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["phone"] == "11988887777"
        assert registry.updates[0][0] == "ben-holder"
