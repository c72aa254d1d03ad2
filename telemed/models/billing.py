"""
Billing Provider Models.
Source: https://docs.asaas.com/reference/listar-clientes
Verified: 2026-10-19

Strict views of billing customers, subscriptions, payments and webhook
events. Raw provider payloads are parsed here and nowhere else.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telemed.core.enums import (
    BillingCycle,
    BillingSubscriptionStatus,
    PaymentStatus,
)


class _BillingModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BillingCustomer(_BillingModel):
    """Customer record held by the billing provider."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile_phone: Optional[str] = Field(default=None, alias="mobilePhone")
    tax_id: Optional[str] = Field(default=None, alias="cpfCnpj")
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    address: Optional[str] = None
    city_name: Optional[str] = Field(default=None, alias="cityName")
    state: Optional[str] = None
    deleted: bool = False

    @field_validator("tax_id", mode="before")
    @classmethod
    def strip_tax_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        digits = "".join(ch for ch in str(v) if ch.isdigit())
        return digits or None

    @property
    def contact_phone(self) -> Optional[str]:
        """Mobile phone when present, landline otherwise."""
        return self.mobile_phone or self.phone


class BillingSubscription(_BillingModel):
    """Recurring subscription held by the billing provider."""

    id: str
    customer: str
    status: BillingSubscriptionStatus
    cycle: BillingCycle = BillingCycle.MONTHLY
    value: Decimal = Decimal("0")
    next_due_date: Optional[date] = Field(default=None, alias="nextDueDate")
    date_created: Optional[date] = Field(default=None, alias="dateCreated")
    description: Optional[str] = None
    external_reference: Optional[str] = Field(default=None, alias="externalReference")
    deleted: bool = False

    @field_validator("status", "cycle", mode="before")
    @classmethod
    def upper_case(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def is_active(self) -> bool:
        return self.status == BillingSubscriptionStatus.ACTIVE and not self.deleted


class BillingPayment(_BillingModel):
    """Single charge generated by a subscription."""

    id: str
    status: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    value: Decimal = Decimal("0")
    due_date: date = Field(alias="dueDate")
    payment_date: Optional[date] = Field(default=None, alias="paymentDate")
    client_payment_date: Optional[date] = Field(default=None, alias="clientPaymentDate")
    confirmed_date: Optional[date] = Field(default=None, alias="confirmedDate")
    deleted: bool = False

    @property
    def is_confirmed(self) -> bool:
        """Whether the payment has been received or confirmed."""
        try:
            return PaymentStatus(self.status.upper()).is_confirmed and not self.deleted
        except ValueError:
            return False

    @property
    def settled_on(self) -> Optional[date]:
        """Date money was received, using the first date the provider reports."""
        return self.payment_date or self.client_payment_date or self.confirmed_date


class BillingEventPayment(_BillingModel):
    id: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    status: Optional[str] = None


class BillingEventSubscription(_BillingModel):
    id: Optional[str] = None
    customer: Optional[str] = None
    status: Optional[str] = None


class BillingEvent(_BillingModel):
    """Webhook notification posted by the billing provider."""

    id: Optional[str] = None
    event: str
    payment: Optional[BillingEventPayment] = None
    subscription: Optional[BillingEventSubscription] = None

    @property
    def customer_id(self) -> Optional[str]:
        if self.payment and self.payment.customer:
            return self.payment.customer
        if self.subscription and self.subscription.customer:
            return self.subscription.customer
        return None

    @property
    def subscription_id(self) -> Optional[str]:
        if self.payment and self.payment.subscription:
            return self.payment.subscription
        if self.subscription and self.subscription.id:
            return self.subscription.id
        return None

    @property
    def dedup_key(self) -> Optional[str]:
        """Identity of this exact delivery, when the provider supplies one."""
        if self.id:
            return self.id
        if self.payment and self.payment.id:
            return f"{self.event}:{self.payment.id}"
        return None
