"""
Ordered Attempt Strategies for Registry Updates.

The registry rejects whole updates for a single bad field. Rather than
nesting retries, each strategy is a pure function that looks at the last
payload and the last rejection and returns the next payload to try, or None
when it does not apply:

    full_payload   -> send everything (first attempt only)
    without_email  -> drop ``email`` when the registry says it is already in use
    without_plans  -> drop ``plans`` when the registry rejects the plan links

Every attempt is recorded in an AttemptLog for the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

from telemed.gateways.base import UpstreamRejectedError

logger = logging.getLogger(__name__)

Payload = dict[str, Any]
AttemptStrategy = Callable[[Payload, Optional[UpstreamRejectedError]], Optional[Payload]]


def full_payload(payload: Payload, error: Optional[UpstreamRejectedError]) -> Optional[Payload]:
    return dict(payload) if error is None else None


def without_email(payload: Payload, error: Optional[UpstreamRejectedError]) -> Optional[Payload]:
    if error is None or "email" not in payload:
        return None
    message = error.message.lower()
    if "email" in message and ("already in use" in message or "em uso" in message):
        return {k: v for k, v in payload.items() if k != "email"}
    return None


def without_plans(payload: Payload, error: Optional[UpstreamRejectedError]) -> Optional[Payload]:
    if error is None or "plans" not in payload:
        return None
    if "plan" in error.message.lower():
        return {k: v for k, v in payload.items() if k != "plans"}
    return None


DEFAULT_STRATEGIES: tuple[AttemptStrategy, ...] = (full_payload, without_email, without_plans)


@dataclass
class Attempt:
    """One call made on behalf of a strategy."""

    strategy: str
    fields: list[str]
    succeeded: bool
    error: Optional[str] = None


@dataclass
class AttemptLog:
    """Every attempt made for one logical update."""

    attempts: list[Attempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].succeeded

    @property
    def last_error(self) -> Optional[str]:
        for attempt in reversed(self.attempts):
            if attempt.error:
                return attempt.error
        return None

    @property
    def dropped_fields(self) -> list[str]:
        """Fields sent on the first attempt but missing from the successful one."""
        if not self.succeeded or not self.attempts:
            return []
        first, last = set(self.attempts[0].fields), set(self.attempts[-1].fields)
        return sorted(first - last)


async def run_attempts(
    action: Callable[[Payload], Awaitable[None]],
    payload: Payload,
    strategies: Sequence[AttemptStrategy] = DEFAULT_STRATEGIES,
) -> AttemptLog:
    """
    Apply strategies in order until one payload is accepted.

    Only UpstreamRejectedError moves on to the next strategy; anything else
    propagates to the caller.
    """
    log = AttemptLog()
    current = payload
    error: Optional[UpstreamRejectedError] = None

    for strategy in strategies:
        candidate = strategy(current, error)
        if candidate is None:
            continue
        try:
            await action(candidate)
        except UpstreamRejectedError as e:
            logger.warning(f"Registry rejected attempt '{strategy.__name__}': {e.message}")
            log.attempts.append(
                Attempt(strategy.__name__, sorted(candidate), succeeded=False, error=e.message)
            )
            current, error = candidate, e
            continue
        log.attempts.append(Attempt(strategy.__name__, sorted(candidate), succeeded=True))
        return log

    return log
