"""
Incident and Webhook Ledger Adapters.
Source: https://firebase.google.com/docs/firestore/manage-data/add-data
Verified: 2026-10-19

Incidents give operators a record of faults the service had to swallow.
The webhook ledger remembers fully applied deliveries so exact redeliveries
are acknowledged without being applied again.
"""

import logging
from typing import Any, Optional

from telemed.models.subject import Incident, ProcessedEvent
from telemed.services.adapters.base import AdapterMode, BaseAdapter

logger = logging.getLogger(__name__)


class IncidentAdapter(BaseAdapter[Incident]):
    """Adapter for operator incident records."""

    collection_name = "incidents"
    model = Incident
    key_field = "id"

    async def record(
        self,
        source: str,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[Incident]:
        """
        Store an incident.

        Never raises: callers record incidents while already handling a
        failure, and a store outage must not replace the original error.
        """
        incident = Incident(source=source, message=message, context=context or {})
        try:
            await self.save(incident)
        except Exception:
            logger.exception(f"Could not record incident from {source}: {message}")
            return None
        logger.warning(f"Incident {incident.id} from {source}: {message}")
        return incident

    async def list_by_source(self, source: str) -> list[Incident]:
        return await self.find_by("source", source)


class WebhookLedgerAdapter(BaseAdapter[ProcessedEvent]):
    """Adapter for processed webhook deliveries."""

    collection_name = "webhook_events"
    model = ProcessedEvent
    key_field = "key"

    async def seen(self, key: str) -> bool:
        return await self.get_by_id(key) is not None

    async def record(self, key: str, event_type: str, outcome: str) -> ProcessedEvent:
        return await self.save(ProcessedEvent(key=key, event_type=event_type, outcome=outcome))


def create_incident_adapter(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
) -> IncidentAdapter:
    """Create a new IncidentAdapter instance."""
    return IncidentAdapter(mode, client, timeout_seconds)


def create_webhook_ledger_adapter(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
) -> WebhookLedgerAdapter:
    """Create a new WebhookLedgerAdapter instance."""
    return WebhookLedgerAdapter(mode, client, timeout_seconds)
