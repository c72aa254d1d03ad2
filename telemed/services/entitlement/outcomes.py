"""
Entitlement and Onboarding Results.

Expected outcomes are returned as values; only programming errors and
unexpected upstream faults propagate as exceptions.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from telemed.core.enums import EntitlementState, FailureKind
from telemed.models.beneficiary import BeneficiaryRecord
from telemed.models.billing import BillingCustomer, BillingSubscription


@dataclass
class EntitlementResult:
    """Outcome of reconciling one person across billing and the registry."""

    tax_id: str
    state: EntitlementState
    customer: Optional[BillingCustomer] = None
    subscription: Optional[BillingSubscription] = None
    beneficiary: Optional[BeneficiaryRecord] = None
    payment_current: bool = False
    paid_through: Optional[date] = None
    cache_written: bool = False
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == EntitlementState.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_id": self.tax_id,
            "state": self.state.value,
            "customer_id": self.customer.id if self.customer else None,
            "name": self.customer.name if self.customer else None,
            "subscription_id": self.subscription.id if self.subscription else None,
            "payment_current": self.payment_current,
            "paid_through": self.paid_through.isoformat() if self.paid_through else None,
            "beneficiary_uuid": self.beneficiary.uuid if self.beneficiary else None,
            "error": self.error,
        }


@dataclass
class FirstAccessResult:
    """Outcome of a first-access onboarding attempt."""

    success: bool
    tax_id: str
    temporary_password: Optional[str] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    missing_fields: list[str] = field(default_factory=list)
    steps_completed: list[str] = field(default_factory=list)

    @classmethod
    def failed(
        cls,
        tax_id: str,
        failure: FailureKind,
        message: str,
        steps: Optional[list[str]] = None,
        missing_fields: Optional[list[str]] = None,
    ) -> "FirstAccessResult":
        return cls(
            success=False,
            tax_id=tax_id,
            failure=failure,
            message=message,
            missing_fields=missing_fields or [],
            steps_completed=list(steps or []),
        )
