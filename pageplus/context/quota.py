"""Over-budget detection for the assembled context.

Recomputation is debounced and generation-tagged: only the result of the
most recent request may change the visible state, however the in-flight
computations interleave.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from pageplus.models.providers import QuotaUsage

logger = logging.getLogger(__name__)

OVER_BUDGET_TITLE = "Your context is too large"
OVER_BUDGET_DESCRIPTION = "You'll have to remove some context items before submitting"
SUMMARIZE_ACTION_LABEL = "Summarize contexts"

QuotaComputation = Callable[[], Awaitable[QuotaUsage | None]]
Remediation = Callable[[], Awaitable[object]]


class QuotaState(StrEnum):
    idle = "idle"
    over_budget = "over_budget"


@dataclass(frozen=True, slots=True)
class QuotaStatus:
    title: str
    description: str
    action_label: str
    usage: QuotaUsage


class QuotaMonitor:
    def __init__(
        self,
        compute: QuotaComputation,
        *,
        debounce_s: float = 0.1,
        remediation: Remediation | None = None,
        on_change: Callable[[QuotaState, QuotaStatus | None], None] | None = None,
    ) -> None:
        self._compute = compute
        self._debounce_s = debounce_s
        self._remediation = remediation
        self._on_change = on_change
        self._generation = 0
        self._pending: asyncio.Task[None] | None = None
        self.state = QuotaState.idle
        self.status: QuotaStatus | None = None
        self.usage: QuotaUsage | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def percentage(self) -> float:
        return self.usage.percentage if self.usage is not None else 0.0

    def request_recompute(self) -> asyncio.Task[None]:
        """Schedule a debounced recomputation, superseding any pending one."""
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._run(self._generation, self._debounce_s))
        return self._pending

    def cancel(self) -> None:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    async def recompute(self) -> None:
        self._generation += 1
        await self._run(self._generation, 0)

    async def wait_idle(self) -> None:
        pending = self._pending
        if pending is None:
            return
        try:
            await pending
        except asyncio.CancelledError:
            if not pending.cancelled():
                raise

    async def _run(self, generation: int, delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        if generation != self._generation:
            return
        try:
            usage = await self._compute()
        except Exception:
            logger.exception("quota computation failed")
            usage = None
        if generation != self._generation:
            logger.debug("discarding stale quota result (generation %d, current %d)", generation, self._generation)
            return
        if usage is None:
            return
        self._apply(usage)

    def _apply(self, usage: QuotaUsage) -> None:
        self.usage = usage
        previous = self.state
        if usage.is_over_budget:
            self.state = QuotaState.over_budget
            self.status = QuotaStatus(
                title=OVER_BUDGET_TITLE,
                description=OVER_BUDGET_DESCRIPTION,
                action_label=SUMMARIZE_ACTION_LABEL,
                usage=usage,
            )
        else:
            self.state = QuotaState.idle
            self.status = None
        if previous != self.state:
            logger.info("quota state %s -> %s (%.1f%%)", previous, self.state, usage.percentage)
        if self._on_change is not None:
            self._on_change(self.state, self.status)

    async def run_remediation(self) -> None:
        """Invoke the "Summarize contexts" action, then recompute."""
        if self._remediation is None:
            raise RuntimeError("no remediation configured")
        await self._remediation()
        self.request_recompute()


__all__ = [
    "OVER_BUDGET_DESCRIPTION",
    "OVER_BUDGET_TITLE",
    "SUMMARIZE_ACTION_LABEL",
    "QuotaComputation",
    "QuotaMonitor",
    "QuotaState",
    "QuotaStatus",
    "Remediation",
]
