"""
First-Access Onboarding Orchestrator.

Turns a paying billing customer into a usable account:

1. Refuse when the local subject already completed first access
2. Resolve entitlement; anything but active or needs-registration is refused
3. Merge profile data (overrides > billing > local) and require name and e-mail
4. Register the beneficiary when needed, persisting its uuid immediately
5. Persist the subject and subscription snapshot
6. Create the identity account with a temporary password
7. Mark first access completed and return the password once

Concurrent calls for the same tax id are serialised in-process; uniqueness of
the identity uid is the cross-process guarantee.
"""

import asyncio
import logging
import weakref
from enum import Enum
from typing import Optional

from telemed.core.enums import EntitlementState, FailureKind, Relation, SubjectStatus
from telemed.gateways.base import (
    DuplicateAccountError,
    IdentityGateway,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from telemed.models.beneficiary import BeneficiaryProfile, BeneficiaryRecord
from telemed.models.billing import BillingCustomer, BillingSubscription
from telemed.models.subject import Plan, ProfileOverrides, Subject
from telemed.services.entitlement.credentials import generate_temporary_password
from telemed.services.entitlement.outcomes import EntitlementResult, FirstAccessResult
from telemed.services.entitlement.reconciliation import ReconciliationEngine
from telemed.utils.tax_id import normalize_tax_id

logger = logging.getLogger(__name__)

INCIDENT_SOURCE = "first-access"
REQUIRED_FIELDS = ("name", "email")
PROFILE_FIELDS = ("name", "email", "phone", "postal_code", "birth_date")


class OnboardingStep(str, Enum):
    """Steps of first access, in order."""

    CHECK_LOCAL = "check-local"
    RESOLVE = "resolve-entitlement"
    MERGE_PROFILE = "merge-profile"
    REGISTER_BENEFICIARY = "register-beneficiary"
    PERSIST_SUBJECT = "persist-subject"
    CREATE_ACCOUNT = "create-account"
    MARK_COMPLETED = "mark-completed"


_REFUSALS = {
    EntitlementState.NONE: (
        FailureKind.NOT_ENTITLED,
        "No active subscription found for this tax id",
    ),
    EntitlementState.PENDING_PAYMENT: (
        FailureKind.PAYMENT_NOT_CONFIRMED,
        "Subscription payment has not been confirmed",
    ),
    EntitlementState.BLOCKED: (
        FailureKind.ACCESS_BLOCKED,
        "Beneficiary access is blocked",
    ),
    EntitlementState.UPSTREAM_UNAVAILABLE: (
        FailureKind.UPSTREAM_UNAVAILABLE,
        "An upstream system is unavailable, try again later",
    ),
}


def merge_profile(
    overrides: ProfileOverrides,
    customer: Optional[BillingCustomer],
    local: Optional[Subject],
) -> dict[str, Optional[str]]:
    """Profile values with caller overrides first, then billing, then local data."""
    billing = {
        "name": customer.name if customer else None,
        "email": customer.email if customer else None,
        "phone": customer.contact_phone if customer else None,
        "postal_code": customer.postal_code if customer else None,
        "birth_date": None,
    }
    given = overrides.non_empty()
    merged: dict[str, Optional[str]] = {}
    for name in PROFILE_FIELDS:
        local_value = getattr(local, name) if local else None
        merged[name] = given.get(name) or billing[name] or local_value or None
    return merged


class OnboardingOrchestrator:
    """Runs first access for paying subscribers."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        identity: IdentityGateway,
        password_length: int = 8,
    ):
        self.engine = engine
        self.registry = engine.registry
        self.store = engine.store
        self.identity = identity
        self.password_length = password_length
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, tax_id: str) -> asyncio.Lock:
        lock = self._locks.get(tax_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tax_id] = lock
        return lock

    async def complete_first_access(
        self,
        tax_id: str,
        overrides: Optional[ProfileOverrides] = None,
    ) -> FirstAccessResult:
        """
        Onboard a subscriber and return a one-time temporary password.

        Raises:
            InvalidTaxIdError: If the tax id has no digits
            Exception: Unexpected faults, after logging and recording an incident
        """
        tax_id = normalize_tax_id(tax_id)
        lock = self._lock_for(tax_id)
        async with lock:
            steps: list[str] = []
            try:
                return await self._complete(tax_id, overrides or ProfileOverrides(), steps)
            except Exception as e:
                step = steps[-1] if steps else "start"
                logger.exception(f"First access for {tax_id} failed after step '{step}': {e}")
                await self.store.incidents.record(
                    INCIDENT_SOURCE,
                    str(e) or type(e).__name__,
                    {"tax_id": tax_id, "step": step, "error_type": type(e).__name__},
                )
                raise

    async def _complete(
        self,
        tax_id: str,
        overrides: ProfileOverrides,
        steps: list[str],
    ) -> FirstAccessResult:
        local = await self.store.subjects.get(tax_id)
        if local is not None and local.first_access_completed:
            return FirstAccessResult.failed(
                tax_id, FailureKind.ALREADY_COMPLETED, "First access already completed", steps
            )
        steps.append(OnboardingStep.CHECK_LOCAL.value)

        entitlement = await self.engine.resolve_entitlement(tax_id)
        steps.append(OnboardingStep.RESOLVE.value)
        refusal = _REFUSALS.get(entitlement.state)
        if refusal is not None:
            failure, message = refusal
            logger.info(f"First access refused for {tax_id}: {entitlement.state.value}")
            return FirstAccessResult.failed(tax_id, failure, message, steps)

        profile = merge_profile(overrides, entitlement.customer, local)
        missing = [name for name in REQUIRED_FIELDS if not profile[name]]
        if missing:
            return FirstAccessResult.failed(
                tax_id,
                FailureKind.MISSING_FIELDS,
                f"Missing required fields: {', '.join(missing)}",
                steps,
                missing_fields=missing,
            )
        steps.append(OnboardingStep.MERGE_PROFILE.value)

        try:
            beneficiary = await self._ensure_beneficiary(tax_id, entitlement, profile, local)
        except UpstreamRejectedError as e:
            logger.warning(f"Registry rejected beneficiary {tax_id}: {e.message}")
            return FirstAccessResult.failed(tax_id, FailureKind.REGISTRY_REJECTED, e.message, steps)
        except UpstreamUnavailableError as e:
            return self._unavailable(tax_id, steps, e)
        steps.append(OnboardingStep.REGISTER_BENEFICIARY.value)

        try:
            await self._persist(tax_id, entitlement, beneficiary, profile)
        except UpstreamUnavailableError as e:
            return self._unavailable(tax_id, steps, e)
        steps.append(OnboardingStep.PERSIST_SUBJECT.value)

        password = generate_temporary_password(self.password_length)
        try:
            await self.identity.create_account(
                subject_id=tax_id,
                email=profile["email"],
                password=password,
                display_name=profile["name"],
            )
        except DuplicateAccountError:
            return FirstAccessResult.failed(
                tax_id, FailureKind.ALREADY_EXISTS, "An account already exists for this user", steps
            )
        except UpstreamUnavailableError as e:
            return self._unavailable(tax_id, steps, e)
        steps.append(OnboardingStep.CREATE_ACCOUNT.value)

        await self.store.subjects.update(tax_id, {"first_access_completed": True})
        steps.append(OnboardingStep.MARK_COMPLETED.value)

        logger.info(f"First access completed for {tax_id}")
        return FirstAccessResult(
            success=True,
            tax_id=tax_id,
            temporary_password=password,
            steps_completed=list(steps),
        )

    def _unavailable(
        self, tax_id: str, steps: list[str], error: UpstreamUnavailableError
    ) -> FirstAccessResult:
        logger.warning(f"First access for {tax_id} interrupted, upstream unavailable: {error}")
        return FirstAccessResult.failed(
            tax_id,
            FailureKind.UPSTREAM_UNAVAILABLE,
            "An upstream system is unavailable, try again later",
            steps,
        )

    async def _plan_for(self, subscription: Optional[BillingSubscription]) -> Optional[Plan]:
        if subscription is None or not subscription.external_reference:
            return None
        return await self.store.plans.get(subscription.external_reference)

    async def _ensure_beneficiary(
        self,
        tax_id: str,
        entitlement: EntitlementResult,
        profile: dict[str, Optional[str]],
        local: Optional[Subject],
    ) -> BeneficiaryRecord:
        if entitlement.beneficiary is not None:
            return entitlement.beneficiary

        if local is not None and local.registry_uuid:
            logger.info(f"Reusing registry record {local.registry_uuid} for {tax_id}")
            return BeneficiaryRecord(uuid=local.registry_uuid, tax_id=tax_id, is_active=True)

        plan = await self._plan_for(entitlement.subscription)
        record = await self.registry.create(
            BeneficiaryProfile(
                name=profile["name"],
                email=profile["email"],
                tax_id=tax_id,
                birthday=profile["birth_date"],
                phone=profile["phone"],
                zip_code=profile["postal_code"],
                plan_uuid=plan.registry_plan_uuid if plan else None,
                payment_type=plan.payment_type if plan else None,
            )
        )

        # Persist at once so a retry reuses this record instead of creating another.
        if local is None:
            await self.store.subjects.upsert(
                Subject(
                    tax_id=tax_id,
                    status=SubjectStatus.PENDING,
                    relation=Relation.SELF,
                    registry_uuid=record.uuid,
                    billing_customer_id=entitlement.customer.id if entitlement.customer else None,
                    **profile,
                )
            )
        else:
            await self.store.subjects.update(tax_id, {"registry_uuid": record.uuid})
        return record

    async def _persist(
        self,
        tax_id: str,
        entitlement: EntitlementResult,
        beneficiary: BeneficiaryRecord,
        profile: dict[str, Optional[str]],
    ) -> None:
        await self.engine.refresh_cache(
            tax_id, entitlement.customer, entitlement.subscription, beneficiary
        )
        updates = {name: value for name, value in profile.items() if value}
        await self.store.subjects.update(tax_id, updates)
