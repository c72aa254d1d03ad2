"""
Unit tests for household management.
"""

import pytest

from telemed.core.enums import FailureKind, Relation, SubjectStatus
from telemed.gateways.base import UpstreamRejectedError
from telemed.models.subject import MemberProfile, Subject
from tests.fixtures.constants import DEPENDENT_TAX_ID, HOLDER_TAX_ID


@pytest.fixture
def active_holder(store, registry):
    store.subjects.seed_demo_data(
        [
            Subject(
                tax_id=HOLDER_TAX_ID,
                name="Maria",
                email="maria@example.com",
                status=SubjectStatus.ACTIVE,
                registry_uuid="ben-holder",
            )
        ]
    )
    registry.add_record(
        HOLDER_TAX_ID,
        "ben-holder",
        plans=[{"paymentType": "a", "plan": {"uuid": "plan-1"}}],
    )


@pytest.mark.unit
class TestAddDependent:
    """Tests for registering dependents."""

    @pytest.mark.asyncio
    async def test_adds_dependent_under_holder(self, household, registry, store, active_holder):
        result = await household.add_dependent(
            HOLDER_TAX_ID,
            MemberProfile(
                tax_id="555.666.777-88",
                name="Joao",
                birth_date="02/03/2015",
                kinship="son",
            ),
        )

        assert result.success is True
        dependent = await store.subjects.get(DEPENDENT_TAX_ID)
        assert dependent.relation == Relation.DEPENDENT
        assert dependent.holder_tax_id == HOLDER_TAX_ID
        assert dependent.status == SubjectStatus.ACTIVE
        assert dependent.kinship == "son"
        assert dependent.registry_uuid == registry.records[DEPENDENT_TAX_ID].uuid

        payload = registry.args_of("create")[0][0].to_payload()
        assert payload["holder"] == HOLDER_TAX_ID
        assert payload["birthday"] == "2015-03-02"

        assert [d.tax_id for d in await household.list_dependents(HOLDER_TAX_ID)] == [
            DEPENDENT_TAX_ID
        ]

    @pytest.mark.asyncio
    async def test_unknown_holder(self, household):
        result = await household.add_dependent(
            HOLDER_TAX_ID, MemberProfile(tax_id=DEPENDENT_TAX_ID, name="Joao")
        )
        assert result.failure == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_suspended_holder(self, household, store, active_holder):
        await store.subjects.update(HOLDER_TAX_ID, {"status": SubjectStatus.SUSPENDED})

        result = await household.add_dependent(
            HOLDER_TAX_ID, MemberProfile(tax_id=DEPENDENT_TAX_ID, name="Joao")
        )

        assert result.failure == FailureKind.ACCESS_BLOCKED

    @pytest.mark.asyncio
    async def test_duplicate_member(self, household, active_holder):
        result = await household.add_dependent(
            HOLDER_TAX_ID, MemberProfile(tax_id=HOLDER_TAX_ID, name="Maria")
        )
        assert result.failure == FailureKind.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_registry_rejection_surfaces_verbatim(
        self, household, registry, store, active_holder
    ):
        registry.fail_with["create"] = UpstreamRejectedError("Data de nascimento inválida")

        result = await household.add_dependent(
            HOLDER_TAX_ID, MemberProfile(tax_id=DEPENDENT_TAX_ID, name="Joao")
        )

        assert result.failure == FailureKind.REGISTRY_REJECTED
        assert result.message == "Data de nascimento inválida"
        assert await store.subjects.get(DEPENDENT_TAX_ID) is None


@pytest.mark.unit
class TestUpdateMemberProfile:
    """Tests for profile updates pushed to the registry."""

    @pytest.mark.asyncio
    async def test_updates_local_and_registry(self, household, registry, store, active_holder):
        result = await household.update_member_profile(
            HOLDER_TAX_ID, HOLDER_TAX_ID, MemberProfile(phone="+55 (11) 98888-7777")
        )

        assert result.success is True
        assert (await store.subjects.get(HOLDER_TAX_ID)).phone == "+55 (11) 98888-7777"
        uuid, payload = registry.updates[0]
        assert uuid == "ben-holder"
        assert payload["phone"] == "11988887777"
        assert payload["plans"] == [{"plan": {"uuid": "plan-1"}, "paymentType": "A"}]

    @pytest.mark.asyncio
    async def test_email_in_use_is_dropped(self, household, registry, active_holder):
        registry.reject_updates.append(UpstreamRejectedError("Email already in use"))

        result = await household.update_member_profile(
            HOLDER_TAX_ID,
            HOLDER_TAX_ID,
            MemberProfile(name="Maria Souza", email="other@example.com"),
        )

        assert result.success is True
        assert result.attempts.dropped_fields == ["email"]
        assert "email" not in registry.updates[0][1]

    @pytest.mark.asyncio
    async def test_all_attempts_rejected(self, household, registry, active_holder):
        registry.reject_updates.append(UpstreamRejectedError("Nome inválido"))

        result = await household.update_member_profile(
            HOLDER_TAX_ID, HOLDER_TAX_ID, MemberProfile(name="M")
        )

        assert result.failure == FailureKind.REGISTRY_REJECTED
        assert result.message == "Nome inválido"
        assert len(result.attempts.attempts) == 1

    @pytest.mark.asyncio
    async def test_holder_may_update_dependent(self, household, store, registry, active_holder):
        store.subjects.seed_demo_data(
            [
                Subject(
                    tax_id=DEPENDENT_TAX_ID,
                    relation=Relation.DEPENDENT,
                    holder_tax_id=HOLDER_TAX_ID,
                )
            ]
        )

        result = await household.update_member_profile(
            HOLDER_TAX_ID, DEPENDENT_TAX_ID, MemberProfile(name="Joao")
        )

        assert result.success is True
        assert result.subject.name == "Joao"
        assert registry.updates == []

    @pytest.mark.asyncio
    async def test_stranger_cannot_update(self, household, active_holder):
        result = await household.update_member_profile(
            "99988877766", HOLDER_TAX_ID, MemberProfile(name="X")
        )
        assert result.failure == FailureKind.NOT_FOUND
