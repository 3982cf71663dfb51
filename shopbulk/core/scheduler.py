"""Time source and delays for the batch engine.

Every wait in the engine (stuck-state delay, retry spacing, round pacing)
goes through a ``Scheduler`` so tests can run on virtual time.
"""

from __future__ import annotations

import asyncio
import time
from typing import List


class Scheduler:
    """Real-time scheduler backed by ``asyncio.sleep`` and a monotonic clock.

    ``sleep`` is a normal awaitable, so cancelling the task that awaits it
    cancels the wait.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


class ManualScheduler(Scheduler):
    """Virtual-time scheduler: ``sleep`` advances the clock without waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self._now += seconds
        # Still yield so other tasks get a turn.
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self._now += seconds
