"""
Core Enumerations for the Entitlement Service.
Source: https://docs.asaas.com/reference/listar-assinaturas
Verified: 2026-10-19
"""

from enum import Enum


# =============================================================================
# Local Subject Enums
# =============================================================================


class SubjectStatus(str, Enum):
    """Access status of a person in the local identity store."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELED = "canceled"
    PENDING = "pending"


class Relation(str, Enum):
    """Relation of a subject to the paying holder."""

    SELF = "self"
    DEPENDENT = "dependent"


class SubscriptionStatus(str, Enum):
    """Local snapshot status of a billing subscription."""

    ACTIVE = "active"
    OVERDUE = "overdue"
    SUSPENDED = "suspended"
    CANCELED = "canceled"


# =============================================================================
# Billing Enums
# =============================================================================


class BillingCycle(str, Enum):
    """Billing cycles as reported by the billing provider."""

    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    BIMONTHLY = "BIMONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUALLY = "SEMIANNUALLY"
    YEARLY = "YEARLY"

    @property
    def months(self) -> int:
        """Length of the cycle in whole months (0 for sub-monthly cycles)."""
        return _CYCLE_MONTHS[self]

    @property
    def days(self) -> int:
        """Length of sub-monthly cycles in days (0 for monthly and longer)."""
        return _CYCLE_DAYS.get(self, 0)


_CYCLE_MONTHS = {
    BillingCycle.WEEKLY: 0,
    BillingCycle.BIWEEKLY: 0,
    BillingCycle.MONTHLY: 1,
    BillingCycle.BIMONTHLY: 2,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.SEMIANNUALLY: 6,
    BillingCycle.YEARLY: 12,
}

_CYCLE_DAYS = {
    BillingCycle.WEEKLY: 7,
    BillingCycle.BIWEEKLY: 14,
}


class BillingSubscriptionStatus(str, Enum):
    """Subscription status values returned by the billing provider."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"


class PaymentStatus(str, Enum):
    """Payment status values returned by the billing provider."""

    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CONFIRMED = "CONFIRMED"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"
    RECEIVED_IN_CASH = "RECEIVED_IN_CASH"
    REFUND_REQUESTED = "REFUND_REQUESTED"
    CHARGEBACK_REQUESTED = "CHARGEBACK_REQUESTED"
    AWAITING_RISK_ANALYSIS = "AWAITING_RISK_ANALYSIS"

    @property
    def is_confirmed(self) -> bool:
        """Whether money for this payment has been received or confirmed."""
        return self in (
            PaymentStatus.RECEIVED,
            PaymentStatus.CONFIRMED,
            PaymentStatus.RECEIVED_IN_CASH,
        )


class BillingEventType(str, Enum):
    """Webhook event names the service reacts to."""

    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    SUBSCRIPTION_SUSPENDED = "SUBSCRIPTION_SUSPENDED"
    SUBSCRIPTION_INACTIVATED = "SUBSCRIPTION_INACTIVATED"
    SUBSCRIPTION_DELETED = "SUBSCRIPTION_DELETED"


# =============================================================================
# Entitlement Enums
# =============================================================================


class EntitlementState(str, Enum):
    """Outcome of reconciling a person across billing and the registry."""

    NONE = "none"
    PENDING_PAYMENT = "pending-payment"
    NEEDS_BENEFICIARY_REGISTRATION = "needs-beneficiary-registration"
    BLOCKED = "blocked"
    ACTIVE = "active"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"


class FailureKind(str, Enum):
    """Typed failure reasons surfaced to callers."""

    NOT_ENTITLED = "not-entitled"
    PAYMENT_NOT_CONFIRMED = "payment-not-confirmed"
    MISSING_FIELDS = "missing-fields"
    ALREADY_COMPLETED = "already-completed"
    ALREADY_EXISTS = "already-exists"
    REGISTRY_REJECTED = "registry-rejected"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"
    ACCESS_BLOCKED = "access-blocked"
    NOT_FOUND = "not-found"


class SpecialtySource(str, Enum):
    """Where an aggregated specialty was discovered."""

    BENEFICIARY = "beneficiary"
    AVAILABLE = "available"
    PLAN = "plan"


class EffectKind(str, Enum):
    """Whether a side effect must succeed for a transition to count."""

    REQUIRED = "required"
    BEST_EFFORT = "best-effort"


class RegistryAction(str, Enum):
    """Registry side effect attached to a billing transition."""

    DEACTIVATE = "deactivate"
    REACTIVATE = "reactivate"
