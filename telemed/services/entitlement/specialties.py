"""
Specialty Aggregation.

A beneficiary may book specialties granted directly, listed as available,
or attached through any of its plans. Sources are merged in that priority
order; the first occurrence of a specialty wins and output order is
discovery order. Plan details are fetched concurrently, and only for plans
that arrived without an inline specialty list.
"""

import asyncio
import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from telemed.core.enums import SpecialtySource
from telemed.gateways.base import GatewayError, RegistryGateway
from telemed.models.beneficiary import BeneficiaryRecord, RegistrySpecialty, Specialty

logger = logging.getLogger(__name__)


async def _plan_specialties(
    registry: RegistryGateway, plan_uuid: str
) -> list[RegistrySpecialty]:
    try:
        details = await registry.get_plan_details(plan_uuid)
    except (GatewayError, ValidationError) as e:
        logger.warning(f"Skipping specialties of plan {plan_uuid}: {e}")
        return []
    return details.specialties if details else []


def merge_specialties(
    sources: Iterable[tuple[SpecialtySource, Iterable[RegistrySpecialty]]],
) -> list[Specialty]:
    """Deduplicate by uuid, keeping the first occurrence in source order."""
    seen: set[str] = set()
    merged: list[Specialty] = []
    for source, items in sources:
        for item in items:
            if not item.uuid or item.uuid in seen:
                continue
            seen.add(item.uuid)
            merged.append(Specialty(uuid=item.uuid, name=item.name, source=source))
    return merged


async def aggregate_specialties(
    beneficiary: Optional[BeneficiaryRecord],
    registry: RegistryGateway,
) -> list[Specialty]:
    """Collect every specialty a beneficiary may book."""
    if beneficiary is None:
        return []

    to_fetch: list[str] = []
    for link in beneficiary.plans:
        if link.specialties is None and link.plan_uuid and link.plan_uuid not in to_fetch:
            to_fetch.append(link.plan_uuid)

    fetched_lists = await asyncio.gather(
        *(_plan_specialties(registry, plan_uuid) for plan_uuid in to_fetch)
    )
    fetched = dict(zip(to_fetch, fetched_lists))

    plan_items: list[RegistrySpecialty] = []
    for link in beneficiary.plans:
        if link.specialties is not None:
            plan_items.extend(link.specialties)
        elif link.plan_uuid:
            plan_items.extend(fetched.get(link.plan_uuid, []))

    return merge_specialties(
        [
            (SpecialtySource.BENEFICIARY, beneficiary.specialties),
            (SpecialtySource.AVAILABLE, beneficiary.available_specialties),
            (SpecialtySource.PLAN, plan_items),
        ]
    )
