"""
Beneficiary Specialty Routes.
Source: https://docs.rapidoc.tech/
Verified: 2026-10-19
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from telemed.api.deps import get_current_subject_id, get_registry, get_store
from telemed.gateways.base import RegistryGateway, UpstreamUnavailableError
from telemed.services.adapters import LocalStore
from telemed.services.entitlement import aggregate_specialties
from telemed.utils.errors import NotFoundError, UpstreamError, ValidationError
from telemed.utils.tax_id import InvalidTaxIdError, normalize_tax_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/beneficiaries",
    tags=["Beneficiaries"],
)


@router.get("/{tax_id}/specialties")
async def list_specialties(
    tax_id: str,
    subject_id: str = Depends(get_current_subject_id),
    registry: RegistryGateway = Depends(get_registry),
    store: LocalStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Every specialty the beneficiary may book.

    A holder may list their own specialties and those of their dependents.
    """
    try:
        tax_id = normalize_tax_id(tax_id)
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e

    if tax_id != subject_id:
        member = await store.subjects.get(tax_id)
        if member is None or member.holder_tax_id != subject_id:
            raise NotFoundError("Beneficiary not found")

    try:
        beneficiary = await registry.find_by_tax_id(tax_id)
    except UpstreamUnavailableError as e:
        logger.warning(f"Registry unavailable while listing specialties of {tax_id}: {e}")
        raise UpstreamError("Beneficiary registry unavailable") from e
    if beneficiary is None:
        raise NotFoundError("Beneficiary not found")

    specialties = await aggregate_specialties(beneficiary, registry)
    return {
        "tax_id": tax_id,
        "beneficiary_uuid": beneficiary.uuid,
        "specialties": [s.model_dump(mode="json") for s in specialties],
    }
