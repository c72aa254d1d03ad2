"""
First Access Routes.

Lets a paying subscriber check eligibility and complete onboarding, which
returns a temporary password exactly once.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from telemed.api.deps import get_engine, get_orchestrator
from telemed.core.enums import EntitlementState
from telemed.models.subject import ProfileOverrides
from telemed.services.entitlement import OnboardingOrchestrator, ReconciliationEngine
from telemed.utils.errors import ValidationError, error_for_failure
from telemed.utils.tax_id import InvalidTaxIdError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/first-access",
    tags=["First Access"],
)

_ONBOARDABLE = {EntitlementState.ACTIVE, EntitlementState.NEEDS_BENEFICIARY_REGISTRATION}


# =============================================================================
# Request/Response Schemas
# =============================================================================


class ValidateRequest(BaseModel):
    """Tax id to check before first access."""

    tax_id: str = Field(..., min_length=1, max_length=20, description="CPF, formatted or not")


class FirstAccessRequest(BaseModel):
    """First access request with optional profile overrides."""

    tax_id: str = Field(..., min_length=1, max_length=20, description="CPF, formatted or not")
    overrides: Optional[ProfileOverrides] = None


class FirstAccessResponse(BaseModel):
    """Successful onboarding. The password is not stored anywhere."""

    tax_id: str
    temporary_password: str
    message: str = "First access completed"


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/validate")
async def validate_first_access(
    request: ValidateRequest,
    engine: ReconciliationEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Report the entitlement state and whether onboarding may proceed."""
    try:
        result = await engine.resolve_entitlement(request.tax_id)
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e

    return {
        **result.to_dict(),
        "can_complete_first_access": result.state in _ONBOARDABLE,
    }


@router.post("", status_code=status.HTTP_201_CREATED, response_model=FirstAccessResponse)
async def complete_first_access(
    request: FirstAccessRequest,
    orchestrator: OnboardingOrchestrator = Depends(get_orchestrator),
) -> FirstAccessResponse:
    """
    Complete first access for a paying subscriber.

    Failures map onto HTTP status codes: 422 missing fields, 409 already
    completed or existing account, 403 not entitled or blocked, 402 payment
    pending, 400 registry rejection, 503 upstream unavailable.
    """
    try:
        result = await orchestrator.complete_first_access(request.tax_id, request.overrides)
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e

    if not result.success:
        extra = {"missing_fields": result.missing_fields} if result.missing_fields else {}
        raise error_for_failure(result.failure, result.message, **extra)

    return FirstAccessResponse(
        tax_id=result.tax_id,
        temporary_password=result.temporary_password or "",
    )
