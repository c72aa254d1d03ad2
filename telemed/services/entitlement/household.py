"""
Household Management.

Holders add dependents under their subscription and keep member profiles in
sync with the registry. Registry profile updates go through the ordered
attempt strategies so a single rejected field does not block the rest.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from telemed.core.enums import FailureKind, Relation, SubjectStatus
from telemed.gateways.base import RegistryGateway, UpstreamRejectedError
from telemed.models.beneficiary import BeneficiaryProfile
from telemed.models.subject import MemberProfile, Subject
from telemed.services.adapters import LocalStore
from telemed.services.entitlement.attempts import AttemptLog, run_attempts
from telemed.utils.tax_id import normalize_tax_id

logger = logging.getLogger(__name__)


@dataclass
class HouseholdResult:
    """Outcome of a household operation."""

    success: bool
    subject: Optional[Subject] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    attempts: AttemptLog = field(default_factory=AttemptLog)


def _failed(failure: FailureKind, message: str, **kwargs) -> HouseholdResult:  # type: ignore[no-untyped-def]
    return HouseholdResult(success=False, failure=failure, message=message, **kwargs)


class HouseholdService:
    """Dependents and member profile maintenance."""

    def __init__(self, registry: RegistryGateway, store: LocalStore):
        self.registry = registry
        self.store = store

    async def list_dependents(self, holder_tax_id: str) -> list[Subject]:
        return await self.store.subjects.list_dependents(normalize_tax_id(holder_tax_id))

    async def add_dependent(self, holder_tax_id: str, profile: MemberProfile) -> HouseholdResult:
        """Register a dependent in the registry and store it under its holder."""
        holder_tax_id = normalize_tax_id(holder_tax_id)
        holder = await self.store.subjects.get(holder_tax_id)
        if holder is None or holder.relation != Relation.SELF:
            return _failed(FailureKind.NOT_FOUND, "Holder not found")
        if holder.status != SubjectStatus.ACTIVE:
            return _failed(FailureKind.ACCESS_BLOCKED, "Holder subscription is not active")

        tax_id = normalize_tax_id(profile.tax_id)
        if tax_id == holder_tax_id or await self.store.subjects.get(tax_id) is not None:
            return _failed(FailureKind.ALREADY_EXISTS, "A member with this tax id already exists")
        if not profile.name:
            return _failed(FailureKind.MISSING_FIELDS, "Missing required fields: name")

        try:
            record = await self.registry.create(
                BeneficiaryProfile(
                    name=profile.name,
                    email=profile.email,
                    tax_id=tax_id,
                    birthday=profile.birth_date,
                    phone=profile.phone,
                    zip_code=profile.postal_code,
                    address=profile.address,
                    city=profile.city,
                    state=profile.state,
                    holder=holder_tax_id,
                )
            )
        except UpstreamRejectedError as e:
            logger.warning(f"Registry rejected dependent {tax_id} of {holder_tax_id}: {e.message}")
            return _failed(FailureKind.REGISTRY_REJECTED, e.message)

        dependent = Subject(
            tax_id=tax_id,
            status=holder.status,
            relation=Relation.DEPENDENT,
            holder_tax_id=holder_tax_id,
            registry_uuid=record.uuid,
            **profile.local_fields(),
        )
        await self.store.subjects.upsert(dependent)
        logger.info(f"Added dependent {tax_id} to holder {holder_tax_id}")
        return HouseholdResult(success=True, subject=dependent)

    async def update_member_profile(
        self,
        requester_tax_id: str,
        tax_id: str,
        patch: MemberProfile,
    ) -> HouseholdResult:
        """
        Update a member's local profile and push it to the registry.

        The requester may update themselves or one of their dependents.
        """
        requester_tax_id = normalize_tax_id(requester_tax_id)
        tax_id = normalize_tax_id(tax_id)
        subject = await self.store.subjects.get(tax_id)
        if subject is None or requester_tax_id not in (subject.tax_id, subject.holder_tax_id):
            return _failed(FailureKind.NOT_FOUND, "Member not found")

        local_updates = patch.local_fields()
        if local_updates:
            subject = await self.store.subjects.update(tax_id, local_updates) or subject

        if not subject.registry_uuid:
            return HouseholdResult(success=True, subject=subject)

        payload = BeneficiaryProfile(
            name=patch.name,
            email=patch.email,
            birthday=patch.birth_date,
            phone=patch.phone,
            zip_code=patch.postal_code,
            address=patch.address,
            city=patch.city,
            state=patch.state,
        ).to_payload()
        if not payload:
            return HouseholdResult(success=True, subject=subject)
        plans = await self._current_plans(tax_id)
        if plans:
            payload["plans"] = plans

        uuid = subject.registry_uuid
        log = await run_attempts(lambda body: self.registry.update(uuid, body), payload)
        if not log.succeeded:
            return _failed(
                FailureKind.REGISTRY_REJECTED,
                log.last_error or "Registry rejected the update",
                subject=subject,
                attempts=log,
            )
        if log.dropped_fields:
            logger.info(f"Registry update for {tax_id} applied without {log.dropped_fields}")
        return HouseholdResult(success=True, subject=subject, attempts=log)

    async def _current_plans(self, tax_id: str) -> list[dict]:
        """Registry plan links, normalised to payment types S or A."""
        record = await self.registry.find_by_tax_id(tax_id)
        if record is None:
            return []
        return [
            {
                "plan": {"uuid": link.plan_uuid},
                "paymentType": "A" if (link.payment_type or "").upper() == "A" else "S",
            }
            for link in record.plans
            if link.plan_uuid
        ]
