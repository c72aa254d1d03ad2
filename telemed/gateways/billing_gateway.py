"""
Billing Gateway backed by the Asaas REST API v3.
Source: https://docs.asaas.com/reference/comece-por-aqui
Verified: 2026-10-19

Features:
- Customer lookup by tax id (CPF)
- Subscription and payment listing
- Customer and subscription creation
- Bounded timeouts with retry on idempotent reads
"""

import logging
from typing import Any, Optional

import httpx

from telemed.gateways.base import (
    BillingGateway,
    GatewayConfig,
    HttpGateway,
    UpstreamUnavailableError,
    with_retry,
)
from telemed.models.billing import BillingCustomer, BillingPayment, BillingSubscription

logger = logging.getLogger(__name__)

PAGE_LIMIT = 100


class AsaasBillingGateway(HttpGateway, BillingGateway):
    """Billing provider client."""

    provider_name = "asaas"

    def __init__(
        self,
        config: GatewayConfig,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        super().__init__(config, client)

    def _default_headers(self) -> dict[str, str]:
        return {"access_token": self._api_key}

    async def _list(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Walk every page of a list endpoint."""
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = await self._send(
                "GET", path, params={**params, "offset": offset, "limit": PAGE_LIMIT}
            )
            body = self._json(response)
            page = body.get("data") or []
            items.extend(page)
            if not body.get("hasMore") or not page:
                return items
            offset += len(page)

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def find_customer_by_tax_id(self, tax_id: str) -> Optional[BillingCustomer]:
        rows = await self._list("/customers", {"cpfCnpj": tax_id})
        customers = [BillingCustomer.model_validate(row) for row in rows]
        customers = [c for c in customers if not c.deleted]
        if not customers:
            logger.info(f"No billing customer for tax id {tax_id}")
            return None
        return customers[0]

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def get_customer(self, customer_id: str) -> Optional[BillingCustomer]:
        response = await self._send("GET", f"/customers/{customer_id}", allow_not_found=True)
        if response is None:
            return None
        return BillingCustomer.model_validate(self._json(response))

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def list_subscriptions(self, customer_id: str) -> list[BillingSubscription]:
        rows = await self._list("/subscriptions", {"customer": customer_id})
        return [BillingSubscription.model_validate(row) for row in rows]

    @with_retry(exceptions=(UpstreamUnavailableError,))
    async def list_payments(self, subscription_id: str) -> list[BillingPayment]:
        rows = await self._list("/payments", {"subscription": subscription_id})
        return [BillingPayment.model_validate(row) for row in rows]

    async def create_customer(
        self,
        name: str,
        email: str,
        tax_id: str,
        phone: Optional[str] = None,
    ) -> BillingCustomer:
        body: dict[str, Any] = {
            "name": name,
            "email": email,
            "cpfCnpj": tax_id,
            "personType": "FISICA",
        }
        if phone:
            body["phone"] = phone
        response = await self._send("POST", "/customers", json=body)
        customer = BillingCustomer.model_validate(self._json(response))
        logger.info(f"Created billing customer {customer.id} for tax id {tax_id}")
        return customer

    async def create_subscription(
        self,
        customer_id: str,
        value: str,
        cycle: str,
        description: str,
        billing_type: str = "UNDEFINED",
    ) -> BillingSubscription:
        body = {
            "customer": customer_id,
            "value": value,
            "cycle": cycle,
            "description": description,
            "billingType": billing_type,
        }
        response = await self._send("POST", "/subscriptions", json=body)
        subscription = BillingSubscription.model_validate(self._json(response))
        logger.info(f"Created billing subscription {subscription.id} for customer {customer_id}")
        return subscription
