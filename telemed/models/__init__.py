"""Domain models for billing, registry and local store records."""

from telemed.models.beneficiary import (
    BeneficiaryProfile,
    BeneficiaryRecord,
    PlanDetails,
    PlanLink,
    RegistrySpecialty,
    Specialty,
)
from telemed.models.billing import (
    BillingCustomer,
    BillingEvent,
    BillingPayment,
    BillingSubscription,
)
from telemed.models.subject import (
    Incident,
    MemberProfile,
    Plan,
    ProcessedEvent,
    ProfileOverrides,
    Subject,
    SubscriptionSnapshot,
)

__all__ = [
    "BeneficiaryProfile",
    "BeneficiaryRecord",
    "BillingCustomer",
    "BillingEvent",
    "BillingPayment",
    "BillingSubscription",
    "Incident",
    "MemberProfile",
    "Plan",
    "PlanDetails",
    "PlanLink",
    "ProcessedEvent",
    "ProfileOverrides",
    "RegistrySpecialty",
    "Specialty",
    "Subject",
    "SubscriptionSnapshot",
]
