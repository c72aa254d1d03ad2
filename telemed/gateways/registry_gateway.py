"""
Beneficiary Registry Gateway backed by the Rapidoc tema API v2.
Source: https://www.python-httpx.org/async/
Verified: 2026-10-19

The registry answers ``{"success": false, "message": ...}`` for business
rejections, sometimes with HTTP 200. Those are raised as
UpstreamRejectedError with the registry's message untouched.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from telemed.gateways.base import (
    GatewayConfig,
    HttpGateway,
    RegistryGateway,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    with_retry,
)
from telemed.models.beneficiary import BeneficiaryProfile, BeneficiaryRecord, PlanDetails

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.rapidoc.tema-v2+json"


class PlanCache:
    """Simple in-memory cache for plan details."""

    def __init__(self, ttl_seconds: int = 300):
        self._cache: dict[str, tuple[PlanDetails, datetime]] = {}
        self._ttl = timedelta(seconds=ttl_seconds)

    def get(self, key: str) -> Optional[PlanDetails]:
        """Get plan from cache if not expired."""
        if key in self._cache:
            plan, cached_at = self._cache[key]
            if datetime.now(timezone.utc) - cached_at < self._ttl:
                return plan
            del self._cache[key]
        return None

    def set(self, key: str, plan: PlanDetails) -> None:
        self._cache[key] = (plan, datetime.now(timezone.utc))


def _rejected(body: Any) -> bool:
    if isinstance(body, list) and body:
        body = body[0]
    return isinstance(body, dict) and body.get("success") is False


def _message(body: Any) -> Optional[str]:
    if isinstance(body, list) and body:
        body = body[0]
    return body.get("message") if isinstance(body, dict) else None


def _extract_uuid(body: Any) -> Optional[str]:
    """Find the beneficiary uuid in the several shapes a creation reply takes."""
    if isinstance(body, list) and body:
        return _extract_uuid(body[0])
    if not isinstance(body, dict):
        return None
    if body.get("uuid"):
        return str(body["uuid"])
    for key in ("beneficiary", "data"):
        nested = body.get(key)
        if isinstance(nested, dict) and nested.get("uuid"):
            return str(nested["uuid"])
    beneficiaries = body.get("beneficiaries")
    if isinstance(beneficiaries, list) and beneficiaries:
        return _extract_uuid(beneficiaries[0])
    return None


class RapidocRegistryGateway(HttpGateway, RegistryGateway):
    """Beneficiary registry client."""

    provider_name = "rapidoc"

    def __init__(
        self,
        config: GatewayConfig,
        token: str,
        client_id: str,
        client: Optional[httpx.AsyncClient] = None,
        plan_cache_ttl_seconds: int = 300,
    ):
        self._token = token
        self._client_id = client_id
        self._plan_cache = PlanCache(plan_cache_ttl_seconds)
        super().__init__(config, client)

    def _default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "clientId": self._client_id,
            "Content-Type": CONTENT_TYPE,
        }

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def find_by_tax_id(self, tax_id: str) -> Optional[BeneficiaryRecord]:
        response = await self._send(
            "GET", f"/tema/api/beneficiaries/{tax_id}", allow_not_found=True
        )
        if response is None:
            return None
        body = self._json(response)
        if _rejected(body):
            return None
        data = body.get("beneficiary") if isinstance(body, dict) else None
        if not data or not data.get("uuid"):
            return None
        return BeneficiaryRecord.model_validate(data)

    async def create(self, profile: BeneficiaryProfile) -> BeneficiaryRecord:
        payload = profile.to_payload()
        response = await self._send("POST", "/tema/api/beneficiaries", json=[payload])
        body = self._json(response)
        if _rejected(body):
            raise UpstreamRejectedError(
                _message(body) or "Beneficiary registration rejected",
                provider=self.provider_name,
                status_code=response.status_code,
            )
        uuid = _extract_uuid(body)
        if uuid is None and profile.tax_id:
            # Some replies only acknowledge; read the record back.
            existing = await self.find_by_tax_id(profile.tax_id)
            uuid = existing.uuid if existing else None
        if uuid is None:
            raise UpstreamRejectedError(
                "Registry accepted the beneficiary but returned no identifier",
                provider=self.provider_name,
                status_code=response.status_code,
            )
        logger.info(f"Registered beneficiary {uuid} for tax id {profile.tax_id}")
        return BeneficiaryRecord(
            uuid=uuid,
            tax_id=profile.tax_id,
            name=profile.name,
            email=profile.email,
            is_active=True,
            holder=profile.holder,
        )

    async def update(self, uuid: str, payload: dict[str, Any]) -> None:
        body = {"uuid": uuid, **payload}
        response = await self._send("PUT", f"/tema/api/beneficiaries/{uuid}", json=body)
        reply = self._json(response) if response.content else None
        if _rejected(reply):
            raise UpstreamRejectedError(
                _message(reply) or "Beneficiary update rejected",
                provider=self.provider_name,
                status_code=response.status_code,
            )

    async def deactivate(self, uuid: str) -> None:
        # DELETE inactivates; the registry never removes beneficiaries.
        await self._send("DELETE", f"/tema/api/beneficiaries/{uuid}")
        logger.info(f"Deactivated beneficiary {uuid}")

    async def reactivate(self, uuid: str) -> None:
        await self.update(uuid, {"isActive": True})
        logger.info(f"Reactivated beneficiary {uuid}")

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def get_plan_details(self, plan_uuid: str) -> Optional[PlanDetails]:
        cached = self._plan_cache.get(plan_uuid)
        if cached is not None:
            return cached
        response = await self._send("GET", f"/tema/api/plans/{plan_uuid}", allow_not_found=True)
        if response is None:
            return None
        body = self._json(response)
        if isinstance(body, dict) and isinstance(body.get("plan"), dict):
            body = body["plan"]
        if not isinstance(body, dict) or _rejected(body):
            return None
        body.setdefault("uuid", plan_uuid)
        plan = PlanDetails.model_validate(body)
        self._plan_cache.set(plan_uuid, plan)
        return plan

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def list_by_holder(self, holder_tax_id: str) -> list[BeneficiaryRecord]:
        response = await self._send(
            "GET", "/tema/api/beneficiaries", params={"holder": holder_tax_id}
        )
        body = self._json(response)
        if isinstance(body, dict):
            body = body.get("beneficiaries") or body.get("data") or []
        records = []
        for row in body:
            if not isinstance(row, dict) or not row.get("uuid"):
                continue
            holder = "".join(ch for ch in str(row.get("holder") or "") if ch.isdigit())
            # The registry may ignore the holder filter.
            if holder != holder_tax_id:
                continue
            records.append(BeneficiaryRecord.model_validate(row))
        return records
