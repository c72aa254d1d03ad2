"""
Plan Catalog Adapter.
Source: https://firebase.google.com/docs/firestore/query-data/get-data
Verified: 2026-10-19

Read-mostly lookup of plans sold to holders.
"""

from decimal import Decimal
from typing import Any, Optional

from telemed.core.enums import BillingCycle
from telemed.models.subject import Plan
from telemed.services.adapters.base import AdapterMode, BaseAdapter


class PlanAdapter(BaseAdapter[Plan]):
    """Adapter for the local plan catalog."""

    collection_name = "plans"
    model = Plan
    key_field = "id"

    def __init__(
        self,
        mode: AdapterMode = AdapterMode.DEMO,
        client: Any = None,
        timeout_seconds: float = 15.0,
        seed: bool = False,
    ):
        super().__init__(mode, client, timeout_seconds)
        if mode == AdapterMode.DEMO and seed:
            self._seed_default_plans()

    def _seed_default_plans(self) -> None:
        """Seed default demo plans."""
        self.seed_demo_data(
            [
                Plan(
                    id="PLAN-INDIVIDUAL-MONTHLY",
                    name="Individual Mensal",
                    price=Decimal("49.90"),
                    cycle=BillingCycle.MONTHLY,
                    payment_type="S",
                ),
                Plan(
                    id="PLAN-FAMILY-YEARLY",
                    name="Familia Anual",
                    price=Decimal("499.00"),
                    cycle=BillingCycle.YEARLY,
                    payment_type="A",
                ),
            ]
        )

    async def get(self, plan_id: str) -> Optional[Plan]:
        return await self.get_by_id(plan_id)

    async def find_by_registry_plan(self, registry_plan_uuid: str) -> Optional[Plan]:
        plans = await self.find_by("registry_plan_uuid", registry_plan_uuid)
        return plans[0] if plans else None


def create_plan_adapter(
    mode: AdapterMode = AdapterMode.DEMO,
    client: Any = None,
    timeout_seconds: float = 15.0,
    seed: bool = False,
) -> PlanAdapter:
    """Create a new PlanAdapter instance."""
    return PlanAdapter(mode, client, timeout_seconds, seed)
