"""
Store Adapters for Demo/Live Mode.
Source: https://firebase.google.com/docs/firestore/quickstart
Verified: 2026-10-19

Provides abstraction layer for switching between in-memory and Firestore
backed local storage.
"""

from dataclasses import dataclass
from typing import Any

from telemed.services.adapters.base import AdapterMode, BaseAdapter, StoreUnavailableError
from telemed.services.adapters.incident_adapter import (
    IncidentAdapter,
    WebhookLedgerAdapter,
    create_incident_adapter,
    create_webhook_ledger_adapter,
)
from telemed.services.adapters.plan_adapter import PlanAdapter, create_plan_adapter
from telemed.services.adapters.subject_adapter import SubjectAdapter, create_subject_adapter
from telemed.services.adapters.subscription_adapter import (
    SubscriptionAdapter,
    create_subscription_adapter,
)


@dataclass
class LocalStore:
    """Every local store adapter the service uses."""

    subjects: SubjectAdapter
    subscriptions: SubscriptionAdapter
    plans: PlanAdapter
    incidents: IncidentAdapter
    webhook_ledger: WebhookLedgerAdapter

    @property
    def write_count(self) -> int:
        """Writes to entitlement state (subjects and subscriptions)."""
        return self.subjects.write_count + self.subscriptions.write_count


def create_local_store(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
    seed_plans: bool = False,
) -> LocalStore:
    """Create a LocalStore with adapters sharing one mode and client."""
    return LocalStore(
        subjects=create_subject_adapter(mode, client, timeout_seconds),
        subscriptions=create_subscription_adapter(mode, client, timeout_seconds),
        plans=create_plan_adapter(mode, client, timeout_seconds, seed=seed_plans),
        incidents=create_incident_adapter(mode, client, timeout_seconds),
        webhook_ledger=create_webhook_ledger_adapter(mode, client, timeout_seconds),
    )


__all__ = [
    # Base
    "AdapterMode",
    "BaseAdapter",
    "StoreUnavailableError",
    # Adapters
    "IncidentAdapter",
    "PlanAdapter",
    "SubjectAdapter",
    "SubscriptionAdapter",
    "WebhookLedgerAdapter",
    # Factories
    "LocalStore",
    "create_local_store",
]
