"""
Entitlement Routes.
"""

from typing import Any

from fastapi import APIRouter, Depends

from telemed.api.deps import get_current_subject_id, get_engine
from telemed.services.entitlement import ReconciliationEngine
from telemed.utils.errors import ValidationError
from telemed.utils.tax_id import InvalidTaxIdError

router = APIRouter(
    prefix="/api/v1/entitlement",
    tags=["Entitlement"],
)


@router.get("/me")
async def get_my_entitlement(
    subject_id: str = Depends(get_current_subject_id),
    engine: ReconciliationEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Entitlement of the authenticated subject, reconciled live."""
    try:
        result = await engine.resolve_entitlement(subject_id)
    except InvalidTaxIdError as e:
        raise ValidationError(str(e)) from e
    return result.to_dict()
