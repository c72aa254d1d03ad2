"""
Dependent Management Routes.

The authenticated subject acts as the holder.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from telemed.api.deps import get_current_subject_id, get_household
from telemed.gateways.base import UpstreamUnavailableError
from telemed.models.subject import MemberProfile, Subject
from telemed.services.entitlement import HouseholdResult, HouseholdService
from telemed.utils.errors import UpstreamError, ValidationError, error_for_failure
from telemed.utils.tax_id import InvalidTaxIdError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/dependents",
    tags=["Dependents"],
)


# =============================================================================
# Request/Response Schemas
# =============================================================================


class DependentCreateRequest(BaseModel):
    """New dependent under the authenticated holder."""

    tax_id: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    birth_date: Optional[str] = Field(None, description="yyyy-MM-dd or dd/MM/yyyy")
    kinship: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class MemberUpdateRequest(BaseModel):
    """Partial profile update. Omitted fields are left unchanged."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    birth_date: Optional[str] = None
    kinship: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class MemberResponse(BaseModel):
    tax_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None
    kinship: Optional[str] = None
    status: str
    relation: str
    holder_tax_id: Optional[str] = None

    @classmethod
    def from_subject(cls, subject: Subject) -> "MemberResponse":
        return cls(
            tax_id=subject.tax_id,
            name=subject.name,
            email=subject.email,
            phone=subject.phone,
            birth_date=subject.birth_date,
            kinship=subject.kinship,
            status=subject.status.value,
            relation=subject.relation.value,
            holder_tax_id=subject.holder_tax_id,
        )


def _raise_on_failure(result: HouseholdResult) -> Subject:
    if not result.success or result.subject is None:
        extra: dict[str, Any] = {}
        if result.attempts.attempts:
            extra["attempts"] = [
                {"strategy": a.strategy, "error": a.error} for a in result.attempts.attempts
            ]
        raise error_for_failure(result.failure, result.message, **extra)
    return result.subject


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=list[MemberResponse])
async def list_dependents(
    subject_id: str = Depends(get_current_subject_id),
    household: HouseholdService = Depends(get_household),
) -> list[MemberResponse]:
    dependents = await household.list_dependents(subject_id)
    return [MemberResponse.from_subject(d) for d in dependents]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=MemberResponse)
async def add_dependent(
    request: DependentCreateRequest,
    subject_id: str = Depends(get_current_subject_id),
    household: HouseholdService = Depends(get_household),
) -> MemberResponse:
    """Register a dependent with the beneficiary registry under the caller."""
    try:
        result = await household.add_dependent(
            subject_id, MemberProfile(**request.model_dump())
        )
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e
    except UpstreamUnavailableError as e:
        logger.warning(f"Adding dependent for {subject_id} interrupted: {e}")
        raise UpstreamError() from e
    return MemberResponse.from_subject(_raise_on_failure(result))


@router.patch("/{tax_id}", response_model=MemberResponse)
async def update_member(
    tax_id: str,
    request: MemberUpdateRequest,
    subject_id: str = Depends(get_current_subject_id),
    household: HouseholdService = Depends(get_household),
) -> MemberResponse:
    """Update the caller's or a dependent's profile and push it to the registry."""
    try:
        result = await household.update_member_profile(
            subject_id, tax_id, MemberProfile(**request.model_dump(exclude_unset=True))
        )
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e
    except UpstreamUnavailableError as e:
        logger.warning(f"Updating member {tax_id} interrupted: {e}")
        raise UpstreamError() from e
    return MemberResponse.from_subject(_raise_on_failure(result))
