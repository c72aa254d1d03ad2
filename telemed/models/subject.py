"""
Local Identity Store Models.
Source: https://firebase.google.com/docs/firestore/manage-data/add-data
Verified: 2026-10-19

Subjects are keyed by tax id and never hard-deleted; subscription snapshots
are a cache of the billing provider, which stays the source of truth.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from telemed.core.enums import (
    BillingCycle,
    Relation,
    SubjectStatus,
    SubscriptionStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subject(BaseModel):
    """A person known to the platform, either a paying holder or a dependent."""

    model_config = ConfigDict(extra="ignore")

    tax_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    birth_date: Optional[str] = None
    status: SubjectStatus = SubjectStatus.PENDING
    relation: Relation = Relation.SELF
    holder_tax_id: Optional[str] = None
    kinship: Optional[str] = None
    registry_uuid: Optional[str] = None
    billing_customer_id: Optional[str] = None
    current_subscription_id: Optional[str] = None
    first_access_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_holder(self) -> "Subject":
        if self.relation == Relation.DEPENDENT and not self.holder_tax_id:
            raise ValueError("dependent subjects require holder_tax_id")
        return self

    @property
    def is_holder(self) -> bool:
        return self.relation == Relation.SELF


class SubscriptionSnapshot(BaseModel):
    """Local cache of a billing subscription."""

    model_config = ConfigDict(extra="ignore")

    billing_id: str
    owner_tax_id: str
    plan_ref: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    cycle: BillingCycle = BillingCycle.MONTHLY
    value: Decimal = Decimal("0")
    next_due_date: Optional[date] = None
    updated_at: datetime = Field(default_factory=utcnow)


class Plan(BaseModel):
    """Local plan catalog entry."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: Decimal = Decimal("0")
    cycle: BillingCycle = BillingCycle.MONTHLY
    specialty_ids: list[str] = Field(default_factory=list)
    registry_plan_uuid: Optional[str] = None
    payment_type: str = "S"


class Incident(BaseModel):
    """Operator-visible record of a swallowed or unexpected fault."""

    id: str = Field(default_factory=lambda: f"INC-{uuid4().hex[:12].upper()}")
    source: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class ProcessedEvent(BaseModel):
    """Ledger entry for a webhook delivery that has been fully applied."""

    key: str
    event_type: str
    outcome: str
    processed_at: datetime = Field(default_factory=utcnow)


class ProfileOverrides(BaseModel):
    """Caller-supplied profile values that win over billing data."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    birth_date: Optional[str] = None

    def non_empty(self) -> dict[str, str]:
        return {
            key: value.strip()
            for key, value in self.model_dump().items()
            if isinstance(value, str) and value.strip()
        }


class MemberProfile(BaseModel):
    """Profile data for adding a dependent or updating a member."""

    tax_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    birth_date: Optional[str] = None
    kinship: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    def local_fields(self) -> dict[str, str]:
        """Non-empty values stored on the local subject."""
        stored = ("name", "email", "phone", "postal_code", "birth_date", "kinship")
        return {
            key: value.strip()
            for key, value in self.model_dump(include=set(stored)).items()
            if isinstance(value, str) and value.strip()
        }
