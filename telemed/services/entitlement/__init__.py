"""
Entitlement Services.

Reconciliation, first-access onboarding, billing webhook ingestion,
specialty aggregation and household management.
"""

from telemed.services.entitlement.household import HouseholdResult, HouseholdService
from telemed.services.entitlement.onboarding import OnboardingOrchestrator
from telemed.services.entitlement.outcomes import EntitlementResult, FirstAccessResult
from telemed.services.entitlement.reconciliation import ReconciliationEngine
from telemed.services.entitlement.specialties import aggregate_specialties
from telemed.services.entitlement.webhook_ingestion import (
    BillingEventIngestor,
    IngestionOutcome,
    IngestionReport,
)

__all__ = [
    "BillingEventIngestor",
    "EntitlementResult",
    "FirstAccessResult",
    "HouseholdResult",
    "HouseholdService",
    "IngestionOutcome",
    "IngestionReport",
    "OnboardingOrchestrator",
    "ReconciliationEngine",
    "aggregate_specialties",
]
