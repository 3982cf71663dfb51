"""Adaptive round sizing against the throttle budget."""

from __future__ import annotations

import logging
import math
from typing import Optional

from shopbulk.core.exceptions import FatalStuckError
from shopbulk.core.scheduler import Scheduler
from shopbulk.core.throttle import ThrottleTracker
from shopbulk.models.batch import RoundDecision, ThrottleState

logger = logging.getLogger("shopbulk.concurrency")


class ConcurrencyController:
    """Decide how many batches the next round may issue concurrently.

    ``max_parallel = floor(currently_available * safety_factor / per_call_cost)``
    clamped to ``[1, hard_cap]``. The controller is stuck when no call can be
    afforded at all: the bucket is empty, or (with ``require_full_budget``)
    the budget does not cover one full call. While stuck it probes the
    throttle, waits ``stuck_delay`` and tries again; after more than
    ``max_stuck_cycles`` consecutive stuck cycles it raises
    ``FatalStuckError``.
    """

    def __init__(
        self,
        safety_factor: float = 0.9,
        hard_cap: int = 500,
        stuck_delay: float = 0.5,
        max_stuck_cycles: int = 120,
        require_full_budget: bool = False,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if not 0 < safety_factor <= 1:
            raise ValueError(f"safety_factor must be in (0, 1], got {safety_factor}")
        if hard_cap < 1:
            raise ValueError(f"hard_cap must be positive, got {hard_cap}")

        self.safety_factor = safety_factor
        self.hard_cap = hard_cap
        self.stuck_delay = stuck_delay
        self.max_stuck_cycles = max_stuck_cycles
        self.require_full_budget = require_full_budget
        self._scheduler = scheduler or Scheduler()
        self._stuck_cycles = 0
        self._last_parallel: Optional[int] = None

    @property
    def stuck_cycles(self) -> int:
        return self._stuck_cycles

    def decide(self, remaining: int, throttle: ThrottleState, per_call_cost: float) -> RoundDecision:
        """Compute the next round size from a throttle snapshot. Pure."""

        available = max(0.0, throttle.currently_available)
        if remaining <= 0:
            return RoundDecision(0, 0, available)

        cost = max(float(per_call_cost), 1e-9)
        raw = int(math.floor(available * self.safety_factor / cost))

        if available <= 0 or (self.require_full_budget and raw < 1):
            return RoundDecision(0, 0, available, stuck=True)

        max_parallel = max(1, min(raw, self.hard_cap))
        batches = min(max_parallel, remaining)
        estimate = max(0.0, available - batches * cost)
        return RoundDecision(batches, max_parallel, estimate)

    async def next_round(
        self,
        remaining: int,
        tracker: ThrottleTracker,
        per_call_cost: float,
    ) -> RoundDecision:
        """Return a dispatchable decision, waiting out stuck states.

        Raises:
            FatalStuckError: The budget stayed unaffordable for more than
                ``max_stuck_cycles`` consecutive cycles.
        """

        while True:
            throttle = tracker.budget()
            decision = self.decide(remaining, throttle, per_call_cost)
            if not decision.stuck:
                self._stuck_cycles = 0
                if self._last_parallel is not None and decision.max_parallel != self._last_parallel:
                    logger.info(
                        "Adjusting parallelism from %s to %s", self._last_parallel, decision.max_parallel
                    )
                self._last_parallel = decision.max_parallel
                return decision

            self._stuck_cycles += 1
            if self._stuck_cycles > self.max_stuck_cycles:
                raise FatalStuckError(
                    "Stuck waiting for query cost to restore. Aborting.",
                    cycles=self._stuck_cycles - 1,
                    throttle=throttle,
                )

            logger.warning(
                "Not enough query cost. Current: %s, Needed: %s. Waiting... (cycle %d/%d)",
                throttle.currently_available,
                per_call_cost,
                self._stuck_cycles,
                self.max_stuck_cycles,
            )
            await tracker.probe()
            await self._scheduler.sleep(self.stuck_delay)
