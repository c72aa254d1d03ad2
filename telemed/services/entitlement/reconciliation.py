"""
Reconciliation Engine.

Decides whether a person may use the service by reading billing, then the
beneficiary registry, and refreshes the local cache only when the answer is
``active``. Billing is the source of truth; the local store is a cache.

Decision order:
    no billing customer            -> none
    no active subscription         -> none
    no confirmed payment in period -> pending-payment
    no registry record             -> needs-beneficiary-registration
    inactive registry record       -> blocked
    otherwise                      -> active (cache refreshed)
"""

import logging
from datetime import date
from typing import Callable, Optional

from telemed.core.enums import EntitlementState, Relation, SubjectStatus
from telemed.gateways.base import BillingGateway, RegistryGateway, UpstreamUnavailableError
from telemed.models.beneficiary import BeneficiaryRecord
from telemed.models.billing import BillingCustomer, BillingSubscription
from telemed.models.subject import Subject, SubscriptionSnapshot
from telemed.services.adapters import LocalStore
from telemed.services.entitlement.decisions import (
    is_payment_current,
    paid_through,
    select_active_subscription,
    snapshot_status,
)
from telemed.services.entitlement.outcomes import EntitlementResult
from telemed.utils.tax_id import normalize_tax_id

logger = logging.getLogger(__name__)

# Profile fields copied from billing only while the local value is empty.
_PROFILE_FIELDS = ("name", "email", "phone", "postal_code")


def _profile_from_customer(customer: BillingCustomer) -> dict[str, Optional[str]]:
    return {
        "name": customer.name,
        "email": customer.email,
        "phone": customer.contact_phone,
        "postal_code": customer.postal_code,
    }


class ReconciliationEngine:
    """Cross-system entitlement resolver."""

    def __init__(
        self,
        billing: BillingGateway,
        registry: RegistryGateway,
        store: LocalStore,
        grace_days: int = 0,
        today: Callable[[], date] = date.today,
    ):
        self.billing = billing
        self.registry = registry
        self.store = store
        self.grace_days = grace_days
        self._today = today

    async def resolve_entitlement(self, tax_id: str) -> EntitlementResult:
        """
        Reconcile a tax id across billing and the registry.

        Raises:
            InvalidTaxIdError: If the tax id has no digits
        """
        tax_id = normalize_tax_id(tax_id)
        try:
            result = await self._resolve(tax_id)
        except UpstreamUnavailableError as e:
            logger.warning(f"Entitlement for {tax_id} undecided, upstream unavailable: {e}")
            return EntitlementResult(
                tax_id=tax_id,
                state=EntitlementState.UPSTREAM_UNAVAILABLE,
                error=str(e),
            )
        logger.info(f"Entitlement for {tax_id}: {result.state.value}")
        return result

    async def _resolve(self, tax_id: str) -> EntitlementResult:
        customer = await self.billing.find_customer_by_tax_id(tax_id)
        if customer is None:
            return EntitlementResult(tax_id=tax_id, state=EntitlementState.NONE)

        subscriptions = await self.billing.list_subscriptions(customer.id)
        subscription = select_active_subscription(subscriptions)
        if subscription is None:
            return EntitlementResult(tax_id=tax_id, state=EntitlementState.NONE, customer=customer)

        payments = await self.billing.list_payments(subscription.id)
        covered_until = paid_through(payments, subscription.cycle, self.grace_days)
        current = is_payment_current(payments, subscription.cycle, self._today(), self.grace_days)
        if not current:
            return EntitlementResult(
                tax_id=tax_id,
                state=EntitlementState.PENDING_PAYMENT,
                customer=customer,
                subscription=subscription,
                paid_through=covered_until,
            )

        beneficiary = await self.registry.find_by_tax_id(tax_id)
        if beneficiary is None:
            return EntitlementResult(
                tax_id=tax_id,
                state=EntitlementState.NEEDS_BENEFICIARY_REGISTRATION,
                customer=customer,
                subscription=subscription,
                payment_current=True,
                paid_through=covered_until,
            )
        if not beneficiary.is_active:
            return EntitlementResult(
                tax_id=tax_id,
                state=EntitlementState.BLOCKED,
                customer=customer,
                subscription=subscription,
                beneficiary=beneficiary,
                payment_current=True,
                paid_through=covered_until,
            )

        written = await self.refresh_cache(tax_id, customer, subscription, beneficiary)
        return EntitlementResult(
            tax_id=tax_id,
            state=EntitlementState.ACTIVE,
            customer=customer,
            subscription=subscription,
            beneficiary=beneficiary,
            payment_current=True,
            paid_through=covered_until,
            cache_written=written,
        )

    async def refresh_cache(
        self,
        tax_id: str,
        customer: BillingCustomer,
        subscription: BillingSubscription,
        beneficiary: Optional[BeneficiaryRecord],
    ) -> bool:
        """Converge the local subject and snapshot; returns whether anything was written."""
        subject_written = await self._refresh_subject(tax_id, customer, subscription, beneficiary)
        snapshot_written = await self._refresh_snapshot(tax_id, subscription)
        return subject_written or snapshot_written

    async def _refresh_subject(
        self,
        tax_id: str,
        customer: BillingCustomer,
        subscription: BillingSubscription,
        beneficiary: Optional[BeneficiaryRecord],
    ) -> bool:
        existing = await self.store.subjects.get(tax_id)
        profile = _profile_from_customer(customer)

        if existing is None:
            await self.store.subjects.upsert(
                Subject(
                    tax_id=tax_id,
                    status=SubjectStatus.ACTIVE,
                    relation=Relation.SELF,
                    registry_uuid=beneficiary.uuid if beneficiary else None,
                    billing_customer_id=customer.id,
                    current_subscription_id=subscription.id,
                    **profile,
                )
            )
            return True

        target = {
            "status": SubjectStatus.ACTIVE,
            "billing_customer_id": customer.id,
            "current_subscription_id": subscription.id,
        }
        if beneficiary is not None:
            target["registry_uuid"] = beneficiary.uuid
        for field_name in _PROFILE_FIELDS:
            if not getattr(existing, field_name) and profile[field_name]:
                target[field_name] = profile[field_name]

        changed = {k: v for k, v in target.items() if getattr(existing, k) != v}
        if not changed:
            return False
        await self.store.subjects.upsert(existing.model_copy(update=changed))
        return True

    async def _refresh_snapshot(self, tax_id: str, subscription: BillingSubscription) -> bool:
        existing = await self.store.subscriptions.get(subscription.id)
        target = SubscriptionSnapshot(
            billing_id=subscription.id,
            owner_tax_id=tax_id,
            plan_ref=subscription.external_reference or (existing.plan_ref if existing else None),
            status=snapshot_status(subscription, payment_current=True),
            cycle=subscription.cycle,
            value=subscription.value,
            next_due_date=subscription.next_due_date,
        )
        if existing is not None and existing.model_dump(
            exclude={"updated_at"}
        ) == target.model_dump(exclude={"updated_at"}):
            return False
        await self.store.subscriptions.upsert(target)
        return True
