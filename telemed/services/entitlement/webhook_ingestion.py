"""
Billing Webhook Ingestion.

Applies billing events to local state and the beneficiary registry:

1. Parse the payload; malformed or unhandled events are acknowledged as no-ops
2. Resolve the holder by billing customer id, falling back to the customer's
   tax id and healing the stored customer id
3. Required effects: holder status, the event's subscription snapshot,
   dependents' statuses (local store only, so registry faults never block them)
4. Best-effort effects: registry deactivation or reactivation of the holder
   and each dependent, isolated from one another

``ingest`` never raises. The billing provider retries deliveries that are not
acknowledged, so faults are logged, recorded as incidents and reported back
in the returned IngestionReport instead.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from telemed.core.enums import RegistryAction
from telemed.gateways.base import BillingGateway, RegistryGateway
from telemed.models.billing import BillingEvent
from telemed.models.subject import Subject
from telemed.services.adapters import LocalStore
from telemed.services.entitlement.effects import EffectReport, EffectRunner
from telemed.services.entitlement.transitions import BillingTransitionTable, Transition

logger = logging.getLogger(__name__)

INCIDENT_SOURCE = "billing-webhook"


class IngestionOutcome(str, Enum):
    """What happened to a webhook delivery."""

    APPLIED = "applied"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    UNKNOWN_SUBJECT = "unknown-subject"
    FAILED = "failed"


@dataclass
class IngestionReport:
    """Acknowledgement returned for every delivery."""

    outcome: IngestionOutcome
    event: Optional[str] = None
    tax_id: Optional[str] = None
    effects: EffectReport = field(default_factory=EffectReport)
    error: Optional[str] = None
    incident_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "received": True,
            "outcome": self.outcome.value,
            "event": self.event,
            "best_effort_failures": [o.name for o in self.effects.best_effort_failures],
            "incident_id": self.incident_id,
        }


class BillingEventIngestor:
    """Applies billing webhook events."""

    def __init__(
        self,
        billing: BillingGateway,
        registry: RegistryGateway,
        store: LocalStore,
        transitions: Optional[BillingTransitionTable] = None,
    ):
        self.billing = billing
        self.registry = registry
        self.store = store
        self.transitions = transitions or BillingTransitionTable()

    async def ingest(self, payload: Any) -> IngestionReport:
        """Apply one webhook delivery. Never raises."""
        event_name = payload.get("event") if isinstance(payload, dict) else None
        try:
            return await self._ingest(payload)
        except Exception as e:
            logger.exception(f"Billing event {event_name} failed: {e}")
            incident = await self.store.incidents.record(
                INCIDENT_SOURCE,
                str(e) or type(e).__name__,
                {"event": event_name, "error_type": type(e).__name__},
            )
            return IngestionReport(
                outcome=IngestionOutcome.FAILED,
                event=event_name,
                error=str(e),
                incident_id=incident.id if incident else None,
            )

    async def _ingest(self, payload: Any) -> IngestionReport:
        try:
            event = (
                payload
                if isinstance(payload, BillingEvent)
                else BillingEvent.model_validate(payload)
            )
        except ValidationError as e:
            logger.warning(f"Ignoring malformed billing event: {e.error_count()} error(s)")
            return IngestionReport(outcome=IngestionOutcome.IGNORED)

        transition = self.transitions.lookup(event.event)
        if transition is None:
            logger.info(f"Ignoring unhandled billing event {event.event}")
            return IngestionReport(outcome=IngestionOutcome.IGNORED, event=event.event)

        customer_id = event.customer_id
        if not customer_id:
            logger.info(f"Ignoring billing event {event.event} without customer")
            return IngestionReport(outcome=IngestionOutcome.IGNORED, event=event.event)

        dedup_key = event.dedup_key
        if dedup_key and await self.store.webhook_ledger.seen(dedup_key):
            logger.info(f"Billing event {dedup_key} already applied")
            return IngestionReport(outcome=IngestionOutcome.DUPLICATE, event=event.event)

        holder = await self.resolve_subject(customer_id)
        if holder is None:
            logger.warning(f"No subject for billing customer {customer_id} ({event.event})")
            return IngestionReport(outcome=IngestionOutcome.UNKNOWN_SUBJECT, event=event.event)

        report = await self.apply_transition(holder, transition, event.subscription_id)

        if dedup_key:
            runner = EffectRunner(f"webhook:{event.event}")
            await runner.best_effort(
                "ledger",
                lambda: self.store.webhook_ledger.record(
                    dedup_key, event.event, IngestionOutcome.APPLIED.value
                ),
            )
            report.outcomes.extend(runner.report.outcomes)

        return IngestionReport(
            outcome=IngestionOutcome.APPLIED,
            event=event.event,
            tax_id=holder.tax_id,
            effects=report,
        )

    async def resolve_subject(self, customer_id: str) -> Optional[Subject]:
        """Find the holder for a billing customer, healing the stored id if needed."""
        subject = await self.store.subjects.find_by_billing_customer(customer_id)
        if subject is not None:
            return subject

        customer = await self.billing.get_customer(customer_id)
        if customer is None or not customer.tax_id:
            return None
        subject = await self.store.subjects.get(customer.tax_id)
        if subject is None:
            return None

        logger.info(f"Linking billing customer {customer_id} to subject {subject.tax_id}")
        healed = await self.store.subjects.update(
            subject.tax_id, {"billing_customer_id": customer_id}
        )
        return healed or subject

    async def apply_transition(
        self,
        holder: Subject,
        transition: Transition,
        subscription_id: Optional[str] = None,
    ) -> EffectReport:
        """
        Run required local effects, then best-effort registry effects.

        Only the snapshot named by the event is updated; without one, the
        holder's current subscription is used. Other snapshots keep their status.
        """
        runner = EffectRunner(f"webhook:{transition.event.value}:{holder.tax_id}")
        status = transition.subject_status

        await runner.required(
            "holder-status",
            lambda: self.store.subjects.update(holder.tax_id, {"status": status}),
        )
        billing_id = subscription_id or holder.current_subscription_id
        if billing_id:
            await runner.required(
                f"subscription:{billing_id}",
                lambda: self.store.subscriptions.set_status(
                    billing_id, transition.subscription_status, owner_tax_id=holder.tax_id
                ),
            )
        else:
            logger.info(f"No subscription to update for {holder.tax_id} ({transition.event.value})")
        dependents = await runner.required(
            "list-dependents", lambda: self.store.subjects.list_dependents(holder.tax_id)
        )
        for dependent in dependents:
            await runner.required(
                f"dependent-status:{dependent.tax_id}",
                lambda d=dependent: self.store.subjects.update(d.tax_id, {"status": status}),
            )

        action = transition.registry_action
        await runner.best_effort(
            f"registry:{holder.tax_id}", lambda: self._apply_registry(holder, action)
        )
        local_dependents = {d.tax_id for d in dependents}
        for dependent in dependents:
            await runner.best_effort(
                f"registry:{dependent.tax_id}",
                lambda d=dependent: self._apply_registry(d, action),
            )

        unlinked = []

        async def collect_unlinked() -> None:
            # Registry dependents of the holder that have no local subject.
            for record in await self.registry.list_by_holder(holder.tax_id):
                if record.tax_id in local_dependents or record.tax_id == holder.tax_id:
                    continue
                unlinked.append(record)

        await runner.best_effort("registry:list-dependents", collect_unlinked)
        for record in unlinked:
            await runner.best_effort(
                f"registry:{record.uuid}",
                lambda r=record: self._registry_call(r.uuid, action),
            )

        logger.info(
            f"Applied {transition.event.value} to {holder.tax_id} "
            f"and {len(dependents)} dependent(s): {status.value}"
        )
        return runner.report

    async def _apply_registry(self, subject: Subject, action: RegistryAction) -> None:
        uuid = subject.registry_uuid
        if not uuid:
            record = await self.registry.find_by_tax_id(subject.tax_id)
            if record is None:
                logger.info(f"No registry record for {subject.tax_id}, nothing to {action.value}")
                return
            uuid = record.uuid
            await self.store.subjects.update(subject.tax_id, {"registry_uuid": uuid})
        await self._registry_call(uuid, action)

    async def _registry_call(self, uuid: str, action: RegistryAction) -> None:
        if action == RegistryAction.DEACTIVATE:
            await self.registry.deactivate(uuid)
        else:
            await self.registry.reactivate(uuid)
