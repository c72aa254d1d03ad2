"""
Side Effect Runner.

Effects are declared as required or best-effort. A failing required effect
aborts the surrounding transition by re-raising; a failing best-effort effect
is logged and recorded, and the transition carries on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from telemed.core.enums import EffectKind

logger = logging.getLogger(__name__)


@dataclass
class EffectOutcome:
    """Result of a single side effect."""

    name: str
    kind: EffectKind
    succeeded: bool
    error: Optional[str] = None


@dataclass
class EffectReport:
    """Outcomes of every effect run for one transition."""

    outcomes: list[EffectOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[EffectOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def best_effort_failures(self) -> list[EffectOutcome]:
        return [o for o in self.failures if o.kind == EffectKind.BEST_EFFORT]


class EffectRunner:
    """Runs effects and keeps an EffectReport."""

    def __init__(self, context: str):
        self.context = context
        self.report = EffectReport()

    async def required(self, name: str, effect: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await effect()
        except Exception as e:
            logger.error(f"[{self.context}] required effect '{name}' failed: {e}")
            self.report.outcomes.append(
                EffectOutcome(name, EffectKind.REQUIRED, succeeded=False, error=str(e))
            )
            raise
        self.report.outcomes.append(EffectOutcome(name, EffectKind.REQUIRED, succeeded=True))
        return result

    async def best_effort(self, name: str, effect: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await effect()
        except Exception as e:
            logger.warning(f"[{self.context}] best-effort effect '{name}' failed: {e}")
            self.report.outcomes.append(
                EffectOutcome(name, EffectKind.BEST_EFFORT, succeeded=False, error=str(e))
            )
            return False
        self.report.outcomes.append(EffectOutcome(name, EffectKind.BEST_EFFORT, succeeded=True))
        return True
