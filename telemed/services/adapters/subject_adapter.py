"""
Subject Store Adapter.
Source: https://firebase.google.com/docs/firestore/query-data/queries
Verified: 2026-10-19

Holders and dependents keyed by tax id.
"""

from typing import Any, Optional

from telemed.core.enums import Relation
from telemed.models.subject import Subject, utcnow
from telemed.services.adapters.base import AdapterMode, BaseAdapter


class SubjectAdapter(BaseAdapter[Subject]):
    """Adapter for subject records."""

    collection_name = "subjects"
    model = Subject
    key_field = "tax_id"

    async def get(self, tax_id: str) -> Optional[Subject]:
        return await self.get_by_id(tax_id)

    async def upsert(self, subject: Subject) -> Subject:
        """Store the subject, stamping ``updated_at``."""
        subject.updated_at = utcnow()
        return await self.save(subject)

    async def update(self, tax_id: str, updates: dict[str, Any]) -> Optional[Subject]:
        """Apply field updates, skipping the write when nothing changes."""
        subject = await self.get(tax_id)
        if subject is None:
            return None
        changed = {k: v for k, v in updates.items() if getattr(subject, k) != v}
        if not changed:
            return subject
        updated = subject.model_copy(update=changed)
        return await self.upsert(Subject.model_validate(updated.model_dump()))

    async def list_dependents(self, holder_tax_id: str) -> list[Subject]:
        """Get all dependents attached to a holder."""
        subjects = await self.find_by("holder_tax_id", holder_tax_id)
        return [s for s in subjects if s.relation == Relation.DEPENDENT]

    async def find_by_billing_customer(self, customer_id: str) -> Optional[Subject]:
        matches = await self.find_by("billing_customer_id", customer_id)
        holders = [s for s in matches if s.relation == Relation.SELF]
        return (holders or matches or [None])[0]


# =============================================================================
# Factory Functions
# =============================================================================


def create_subject_adapter(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
) -> SubjectAdapter:
    """Create a new SubjectAdapter instance."""
    return SubjectAdapter(mode, client, timeout_seconds)
