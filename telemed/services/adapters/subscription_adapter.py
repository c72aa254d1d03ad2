"""
Subscription Snapshot Adapter.
Source: https://firebase.google.com/docs/firestore/manage-data/add-data#set_a_document
Verified: 2026-10-19

Local cache of billing subscriptions keyed by billing id.
"""

import logging
from typing import Any, Optional

from telemed.core.enums import SubscriptionStatus
from telemed.models.subject import SubscriptionSnapshot, utcnow
from telemed.services.adapters.base import AdapterMode, BaseAdapter

logger = logging.getLogger(__name__)


class SubscriptionAdapter(BaseAdapter[SubscriptionSnapshot]):
    """Adapter for subscription snapshots."""

    collection_name = "subscriptions"
    model = SubscriptionSnapshot
    key_field = "billing_id"

    async def get(self, billing_id: str) -> Optional[SubscriptionSnapshot]:
        return await self.get_by_id(billing_id)

    async def upsert(self, snapshot: SubscriptionSnapshot) -> SubscriptionSnapshot:
        snapshot.updated_at = utcnow()
        return await self.save(snapshot)

    async def list_by_owner(self, owner_tax_id: str) -> list[SubscriptionSnapshot]:
        return await self.find_by("owner_tax_id", owner_tax_id)

    async def set_status(
        self,
        billing_id: str,
        status: SubscriptionStatus,
        owner_tax_id: Optional[str] = None,
    ) -> int:
        """
        Set the status of one snapshot; returns writes made (0 or 1).

        Canceled snapshots are terminal and never move to another status.
        When ``owner_tax_id`` is given, snapshots owned by someone else are
        left untouched.
        """
        snapshot = await self.get(billing_id)
        if snapshot is None or snapshot.status == status:
            return 0
        if owner_tax_id and snapshot.owner_tax_id != owner_tax_id:
            logger.warning(f"Subscription {billing_id} is not owned by {owner_tax_id}")
            return 0
        if snapshot.status == SubscriptionStatus.CANCELED:
            logger.info(f"Subscription {billing_id} is canceled; ignoring {status.value}")
            return 0
        snapshot.status = status
        await self.upsert(snapshot)
        logger.info(f"Set subscription {billing_id} to {status.value}")
        return 1


def create_subscription_adapter(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
) -> SubscriptionAdapter:
    """Create a new SubscriptionAdapter instance."""
    return SubscriptionAdapter(mode, client, timeout_seconds)
