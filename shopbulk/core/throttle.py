"""Leaky-bucket throttle state tracking.

The tracker holds the last throttle snapshot reported by the remote API. Any
completed call overwrites it (the remote is always more current than a local
estimate); a cheap probe call refreshes it when no feedback is flowing.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from shopbulk.core.scheduler import Scheduler
from shopbulk.models.batch import ThrottleState
from shopbulk.utils.logger import log_throttle

logger = logging.getLogger("shopbulk.throttle")

ProbeFn = Callable[[], Awaitable[Optional[ThrottleState]]]


class ThrottleTracker:
    """Owned, per-run view of the remote throttle bucket.

    Args:
        initial: Start state assumed before any feedback arrives.
        probe_fn: Coroutine function performing a minimal-cost remote call
                  and returning its throttle snapshot (or None).
        scheduler: Clock used to project restoration between observations.
        project_restore: When True, ``budget()`` adds the points restored
                         since the last observation, capped at capacity.
    """

    def __init__(
        self,
        initial: ThrottleState,
        probe_fn: Optional[ProbeFn] = None,
        scheduler: Optional[Scheduler] = None,
        project_restore: bool = True,
        label: str = "ENGINE",
    ) -> None:
        self._state = initial
        self._probe_fn = probe_fn
        self._scheduler = scheduler or Scheduler()
        self._project_restore = project_restore
        self._observed_at: Optional[float] = None
        self._label = label
        self.observations = 0
        self.probes = 0

    def observe(self, snapshot: Optional[ThrottleState]) -> None:
        """Overwrite the tracked state with a remote snapshot (last writer wins)."""

        if snapshot is None:
            return
        self._state = snapshot
        self._observed_at = self._scheduler.monotonic()
        self.observations += 1

    async def probe(self) -> ThrottleState:
        """Refresh the state with a dedicated probe call.

        A failed or empty probe keeps the current state.
        """

        if self._probe_fn is None:
            return self.budget()

        self.probes += 1
        snapshot = await self._probe_fn()
        if snapshot is None:
            logger.warning("Throttle probe returned no snapshot; keeping last known state")
            return self.budget()

        self.observe(snapshot)
        log_throttle(self._label, snapshot)
        return snapshot

    def budget(self) -> ThrottleState:
        """Return the current snapshot, including projected restoration."""

        state = self._state
        if not self._project_restore or self._observed_at is None:
            return state

        elapsed = max(0.0, self._scheduler.monotonic() - self._observed_at)
        if elapsed == 0 or state.restore_rate <= 0:
            return state

        restored = min(
            state.maximum_available,
            state.currently_available + state.restore_rate * elapsed,
        )
        return replace(state, currently_available=restored)

    def debit(self, cost: float) -> ThrottleState:
        """Subtract a round's estimated cost from the current budget.

        The decrement never goes below zero and never exceeds ``cost``; the
        next remote snapshot replaces the result.
        """

        current = self.budget()
        remaining = max(0.0, current.currently_available - max(0.0, cost))
        self._state = replace(current, currently_available=remaining)
        self._observed_at = self._scheduler.monotonic()
        return self._state
