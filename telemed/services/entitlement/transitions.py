"""
Billing Event Transition Table.

Provides:
- Mapping from billing webhook events to subject status
- Matching subscription snapshot status
- Registry side effect for holder and dependents

Transitions:
    PAYMENT_OVERDUE          -> suspended, deactivate
    SUBSCRIPTION_SUSPENDED   -> suspended, deactivate
    SUBSCRIPTION_INACTIVATED -> suspended, deactivate
    PAYMENT_CONFIRMED        -> active,    reactivate
    PAYMENT_RECEIVED         -> active,    reactivate
    PAYMENT_REFUNDED         -> canceled,  deactivate
    SUBSCRIPTION_DELETED     -> canceled,  deactivate
    anything else            -> no-op
"""

from dataclasses import dataclass
from typing import Optional

from telemed.core.enums import (
    BillingEventType,
    RegistryAction,
    SubjectStatus,
    SubscriptionStatus,
)


@dataclass(frozen=True)
class Transition:
    """Effects a billing event has on local and registry state."""

    event: BillingEventType
    subject_status: SubjectStatus
    subscription_status: SubscriptionStatus
    registry_action: RegistryAction


# =============================================================================
# Transition Definitions
# =============================================================================


BILLING_TRANSITIONS: list[Transition] = [
    Transition(
        event=BillingEventType.PAYMENT_OVERDUE,
        subject_status=SubjectStatus.SUSPENDED,
        subscription_status=SubscriptionStatus.OVERDUE,
        registry_action=RegistryAction.DEACTIVATE,
    ),
    Transition(
        event=BillingEventType.SUBSCRIPTION_SUSPENDED,
        subject_status=SubjectStatus.SUSPENDED,
        subscription_status=SubscriptionStatus.SUSPENDED,
        registry_action=RegistryAction.DEACTIVATE,
    ),
    Transition(
        event=BillingEventType.SUBSCRIPTION_INACTIVATED,
        subject_status=SubjectStatus.SUSPENDED,
        subscription_status=SubscriptionStatus.SUSPENDED,
        registry_action=RegistryAction.DEACTIVATE,
    ),
    Transition(
        event=BillingEventType.PAYMENT_CONFIRMED,
        subject_status=SubjectStatus.ACTIVE,
        subscription_status=SubscriptionStatus.ACTIVE,
        registry_action=RegistryAction.REACTIVATE,
    ),
    Transition(
        event=BillingEventType.PAYMENT_RECEIVED,
        subject_status=SubjectStatus.ACTIVE,
        subscription_status=SubscriptionStatus.ACTIVE,
        registry_action=RegistryAction.REACTIVATE,
    ),
    Transition(
        event=BillingEventType.PAYMENT_REFUNDED,
        subject_status=SubjectStatus.CANCELED,
        subscription_status=SubscriptionStatus.CANCELED,
        registry_action=RegistryAction.DEACTIVATE,
    ),
    Transition(
        event=BillingEventType.SUBSCRIPTION_DELETED,
        subject_status=SubjectStatus.CANCELED,
        subscription_status=SubscriptionStatus.CANCELED,
        registry_action=RegistryAction.DEACTIVATE,
    ),
]


class BillingTransitionTable:
    """Lookup of billing transitions by event name."""

    def __init__(self, transitions: Optional[list[Transition]] = None):
        self._by_event = {t.event.value: t for t in (transitions or BILLING_TRANSITIONS)}

    def lookup(self, event_name: str) -> Optional[Transition]:
        """Transition for an event, or None when the event is not handled."""
        return self._by_event.get((event_name or "").strip().upper())

    def handled_events(self) -> list[str]:
        return list(self._by_event)
