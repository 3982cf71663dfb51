"""Retry decisions for failed batches after a round."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from shopbulk.core.dispatcher import BatchDispatcher
from shopbulk.core.scheduler import Scheduler
from shopbulk.models.batch import BatchAttempt, BatchOutcome, BatchResult

logger = logging.getLogger("shopbulk.retry")


class RetryGovernor:
    """Requeue throttle-related failures, serially, with a fixed delay.

    A result is retry-eligible when its outcome is THROTTLED, or when it is a
    TRANSPORT_ERROR in a round where some call reported a throttle snapshot
    below ``low_water_mark``. User errors and successes are never retried.
    A batch is attempted at most ``max_attempts`` times in total.
    """

    def __init__(
        self,
        low_water_mark: float = 2000,
        retry_delay: float = 1.0,
        max_attempts: int = 3,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self.low_water_mark = low_water_mark
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self._scheduler = scheduler or Scheduler()
        self.retries = 0

    def is_hot(self, results: Sequence[BatchResult]) -> bool:
        """True if any result carried a snapshot below the low-water mark."""

        return any(
            r.throttle is not None and r.throttle.currently_available < self.low_water_mark
            for r in results
        )

    def triage(self, results: Sequence[BatchResult]) -> List[BatchAttempt]:
        """Return the next attempts for every retry-eligible result."""

        return [results[i].as_attempt().next_attempt() for i in self._eligible_positions(results)]

    def _eligible_positions(self, results: Sequence[BatchResult]) -> List[int]:
        hot = self.is_hot(results)
        positions: List[int] = []
        for i, r in enumerate(results):
            if r.attempt >= self.max_attempts:
                continue
            if r.outcome == BatchOutcome.THROTTLED:
                positions.append(i)
            elif r.outcome == BatchOutcome.TRANSPORT_ERROR and hot:
                positions.append(i)
        return positions

    async def resolve(
        self,
        results: Sequence[BatchResult],
        dispatcher: BatchDispatcher,
    ) -> Tuple[List[BatchResult], int]:
        """Retry eligible results until none remain eligible.

        Returns:
            The round's results with each retried entry replaced by its latest
            attempt, and the number of retries issued.
        """

        final = list(results)
        issued = 0

        while True:
            positions = self._eligible_positions(final)
            if not positions:
                break

            logger.warning(
                "Throttle warning or error detected. Retrying %d failed batch(es) with delay.",
                len(positions),
            )
            for pos in positions:
                await self._scheduler.sleep(self.retry_delay)
                attempt = final[pos].as_attempt().next_attempt()
                final[pos] = await dispatcher.dispatch_one(attempt)
                issued += 1

        self.retries += issued
        return final, issued
