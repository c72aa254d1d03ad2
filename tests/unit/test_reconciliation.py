"""
Unit tests for the reconciliation engine.
"""

from datetime import date

import pytest

from telemed.core.enums import EntitlementState, Relation, SubjectStatus, SubscriptionStatus
from telemed.gateways.base import UpstreamUnavailableError
from telemed.models.subject import Subject
from telemed.utils.tax_id import InvalidTaxIdError
from tests.fixtures.constants import HOLDER_TAX_ID


@pytest.mark.unit
class TestResolveEntitlement:
    """Tests for the entitlement decision order."""

    @pytest.mark.asyncio
    async def test_unknown_customer_is_none(self, engine, store):
        result = await engine.resolve_entitlement("999.888.777-66")

        assert result.state == EntitlementState.NONE
        assert result.tax_id == "99988877766"
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_invalid_tax_id_raises(self, engine):
        with pytest.raises(InvalidTaxIdError):
            await engine.resolve_entitlement("---")

    @pytest.mark.asyncio
    async def test_no_active_subscription_is_none(self, engine, billing, store):
        billing.add_customer("cus_9", HOLDER_TAX_ID, name="Ana")
        billing.add_subscription("cus_9", "sub_9", status="INACTIVE")

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.NONE
        assert result.customer.id == "cus_9"
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_unpaid_subscription_is_pending_payment(self, engine, billing, store):
        billing.add_customer("cus_9", HOLDER_TAX_ID, name="Ana")
        billing.add_subscription("cus_9", "sub_9")
        billing.add_payment("sub_9", "pay_9", "PENDING", date(2026, 10, 10))

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.PENDING_PAYMENT
        assert result.payment_current is False
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_stale_payment_is_pending_payment(self, engine, billing):
        billing.add_customer("cus_9", HOLDER_TAX_ID, name="Ana")
        billing.add_subscription("cus_9", "sub_9")
        billing.add_payment("sub_9", "pay_9", "RECEIVED", date(2026, 7, 10))

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.PENDING_PAYMENT
        assert result.paid_through == date(2026, 8, 10)

    @pytest.mark.asyncio
    async def test_missing_registry_record(self, engine, paying_holder, store):
        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.NEEDS_BENEFICIARY_REGISTRATION
        assert result.payment_current is True
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_inactive_registry_record_is_blocked(
        self, engine, paying_holder, registry, store
    ):
        registry.add_record(HOLDER_TAX_ID, "ben-1", is_active=False)

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.BLOCKED
        assert result.beneficiary.uuid == "ben-1"
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_active_creates_subject_and_snapshot(
        self, engine, paying_holder, registry, store
    ):
        registry.add_record(HOLDER_TAX_ID, "ben-1")

        result = await engine.resolve_entitlement("111.222.333-44")

        assert result.state == EntitlementState.ACTIVE
        assert result.is_active
        assert result.cache_written is True

        subject = await store.subjects.get(HOLDER_TAX_ID)
        assert subject.status == SubjectStatus.ACTIVE
        assert subject.relation == Relation.SELF
        assert subject.registry_uuid == "ben-1"
        assert subject.billing_customer_id == "cus_001"
        assert subject.current_subscription_id == "sub_001"
        assert subject.name == "Maria Souza"
        assert subject.phone == "11987654321"

        snapshot = await store.subscriptions.get("sub_001")
        assert snapshot.owner_tax_id == HOLDER_TAX_ID
        assert snapshot.status == SubscriptionStatus.ACTIVE
        assert snapshot.plan_ref == "PLAN-INDIVIDUAL-MONTHLY"

    @pytest.mark.asyncio
    async def test_second_resolution_writes_nothing(
        self, engine, paying_holder, registry, store
    ):
        registry.add_record(HOLDER_TAX_ID, "ben-1")

        await engine.resolve_entitlement(HOLDER_TAX_ID)
        writes_after_first = store.write_count
        second = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert second.state == EntitlementState.ACTIVE
        assert second.cache_written is False
        assert store.write_count == writes_after_first

    @pytest.mark.asyncio
    async def test_existing_profile_fields_are_kept(
        self, engine, paying_holder, registry, store
    ):
        registry.add_record(HOLDER_TAX_ID, "ben-1")
        store.subjects.seed_demo_data(
            [Subject(tax_id=HOLDER_TAX_ID, name="Maria S.", status=SubjectStatus.SUSPENDED)]
        )

        await engine.resolve_entitlement(HOLDER_TAX_ID)

        subject = await store.subjects.get(HOLDER_TAX_ID)
        assert subject.name == "Maria S."
        assert subject.email == "maria@example.com"
        assert subject.status == SubjectStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_upstream_unavailable(self, engine, paying_holder, registry, store):
        registry.fail_with["find_by_tax_id"] = UpstreamUnavailableError("registry down")

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.UPSTREAM_UNAVAILABLE
        assert "registry down" in result.error
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_billing_unavailable(self, engine, billing):
        billing.fail_with["find_customer_by_tax_id"] = UpstreamUnavailableError("timeout")

        result = await engine.resolve_entitlement(HOLDER_TAX_ID)

        assert result.state == EntitlementState.UPSTREAM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_to_dict(self, engine, paying_holder, registry):
        registry.add_record(HOLDER_TAX_ID, "ben-1")

        body = (await engine.resolve_entitlement(HOLDER_TAX_ID)).to_dict()

        assert body["state"] == "active"
        assert body["subscription_id"] == "sub_001"
        assert body["paid_through"] == "2026-11-10"
        assert body["beneficiary_uuid"] == "ben-1"
