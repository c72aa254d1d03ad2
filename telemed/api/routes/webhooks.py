"""
Billing Webhook Routes.
Source: https://docs.asaas.com/docs/receba-eventos-do-asaas-no-seu-endpoint-de-webhook
Verified: 2026-10-19

Deliveries are always acknowledged with 200 once authenticated; the billing
provider pauses its queue after repeated non-2xx answers.
"""

import secrets
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request

from telemed.api.config import Settings, get_settings
from telemed.api.deps import get_ingestor
from telemed.services.entitlement import BillingEventIngestor
from telemed.utils.errors import AuthenticationError
from telemed.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/webhooks",
    tags=["Webhooks"],
)


@router.post("/billing")
async def receive_billing_event(
    request: Request,
    access_token: Optional[str] = Header(default=None, alias="asaas-access-token"),
    ingestor: BillingEventIngestor = Depends(get_ingestor),
    config: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Apply a billing event. Faults are reported in the body, never as 5xx."""
    expected = config.ASAAS_WEBHOOK_TOKEN
    if expected and not secrets.compare_digest(access_token or "", expected):
        logger.warning("Billing webhook rejected: bad access token")
        raise AuthenticationError("Invalid webhook token")

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Billing webhook body is not JSON")
        payload = None

    report = await ingestor.ingest(payload)
    return report.to_dict()
