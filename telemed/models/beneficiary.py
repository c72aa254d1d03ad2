"""
Beneficiary Registry Models.
Source: https://docs.pydantic.dev/latest/concepts/validators/#model-validators
Verified: 2026-10-19

The registry returns loosely shaped JSON: specialties may carry their id as
``uuid`` or ``id`` and their label as ``name``, ``description`` or ``title``,
and plan links nest the plan under a ``plan`` key. These models flatten that
shape once at the edge.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from telemed.core.enums import SpecialtySource


class _RegistryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegistrySpecialty(_RegistryModel):
    """Specialty reference as returned by the registry."""

    uuid: Optional[str] = None
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def pick_identifier(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"uuid": data}
        if isinstance(data, dict):
            return {
                "uuid": data.get("uuid") or data.get("id"),
                "name": data.get("name") or data.get("description") or data.get("title"),
            }
        return data


class PlanLink(_RegistryModel):
    """Association between a beneficiary and a registry plan."""

    plan_uuid: Optional[str] = None
    payment_type: Optional[str] = Field(default=None, alias="paymentType")
    specialties: Optional[list[RegistrySpecialty]] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_plan(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        plan = data.get("plan") if isinstance(data.get("plan"), dict) else {}
        specialties = plan.get("specialties")
        if specialties is None:
            specialties = data.get("specialties")
        return {
            "plan_uuid": (
                plan.get("uuid")
                or data.get("plan_uuid")
                or data.get("planUuid")
                or data.get("uuid")
            ),
            "payment_type": (
                data.get("paymentType")
                or data.get("payment_type")
                or plan.get("paymentType")
            ),
            "specialties": specialties if isinstance(specialties, list) else None,
        }


class PlanDetails(_RegistryModel):
    """Registry plan with its specialty list."""

    uuid: str
    name: Optional[str] = None
    payment_type: Optional[str] = Field(default=None, alias="paymentType")
    specialties: list[RegistrySpecialty] = Field(default_factory=list)


class BeneficiaryRecord(_RegistryModel):
    """Beneficiary as held by the registry."""

    uuid: str
    tax_id: Optional[str] = Field(default=None, alias="cpf")
    name: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = Field(default=True, alias="isActive")
    holder: Optional[str] = None
    specialties: list[RegistrySpecialty] = Field(default_factory=list)
    available_specialties: list[RegistrySpecialty] = Field(
        default_factory=list, alias="availableSpecialties"
    )
    plans: list[PlanLink] = Field(default_factory=list)

    @field_validator("tax_id", "holder", mode="before")
    @classmethod
    def digits_only(cls, v: Any) -> Any:
        if v is None or isinstance(v, dict):
            return None
        return "".join(ch for ch in str(v) if ch.isdigit()) or None

    @field_validator("specialties", "available_specialties", "plans", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class Specialty(BaseModel):
    """Aggregated specialty a beneficiary may book."""

    uuid: str
    name: Optional[str] = None
    source: SpecialtySource


_BR_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


def normalize_birthday(value: Optional[str]) -> Optional[str]:
    """Convert dd/MM/yyyy to yyyy-MM-dd, leaving other formats untouched."""
    if not value:
        return None
    value = value.strip()
    match = _BR_DATE.match(value)
    if match:
        day, month, year = match.groups()
        return f"{year}-{month}-{day}"
    return value


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Keep the last 11 digits of a Brazilian phone number."""
    if not value:
        return None
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) > 11:
        digits = digits[-11:]
    return digits or None


class BeneficiaryProfile(BaseModel):
    """Data needed to register or update a beneficiary."""

    name: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None
    birthday: Optional[str] = None
    phone: Optional[str] = None
    zip_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    holder: Optional[str] = None
    plan_uuid: Optional[str] = None
    payment_type: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """Build the registry wire body with empty fields removed."""
        raw = {
            "name": self.name,
            "email": self.email,
            "cpf": self.tax_id,
            "birthday": normalize_birthday(self.birthday),
            "phone": normalize_phone(self.phone),
            "zipCode": self.zip_code,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "holder": self.holder,
        }
        if self.plan_uuid:
            raw["plans"] = [
                {
                    "paymentType": (self.payment_type or "S").upper(),
                    "plan": {"uuid": self.plan_uuid},
                }
            ]
        return {key: value for key, value in raw.items() if value not in (None, "")}
