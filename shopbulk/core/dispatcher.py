"""Concurrent dispatch of one round of batches."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from shopbulk.core.exceptions import RemoteCallError, ThrottledError
from shopbulk.core.throttle import ThrottleTracker
from shopbulk.models.batch import BatchAttempt, BatchOutcome, BatchResult
from shopbulk.utils.logger import log_batch

if TYPE_CHECKING:
    from shopbulk.adapters.remote_api import RemoteMutationAPI

logger = logging.getLogger("shopbulk.dispatcher")


class BatchDispatcher:
    """Issue one network call per batch and classify the outcome.

    Every call's throttle feedback, success or failure, is forwarded to the
    tracker so the next round's concurrency decision sees it.

    Args:
        remote: Remote collaborator executing a batch.
        tracker: Throttle tracker updated from call feedback.
        label: Operation label used in log lines.
        total_batches: Total batch count of the run, for progress logs.
    """

    def __init__(
        self,
        remote: "RemoteMutationAPI",
        tracker: ThrottleTracker,
        label: str = "BATCH",
        total_batches: Optional[int] = None,
    ) -> None:
        self._remote = remote
        self._tracker = tracker
        self._label = label
        self.total_batches = total_batches
        self.calls = 0

    async def dispatch_round(
        self,
        attempts: Sequence[BatchAttempt],
        max_parallel: Optional[int] = None,
    ) -> List[BatchResult]:
        """Dispatch all attempts concurrently and wait for every one of them.

        At most ``max_parallel`` calls are in flight at once (the whole round
        when omitted). Results come back in the order of ``attempts``
        regardless of completion order.
        """

        if not attempts:
            return []

        limit = len(attempts) if max_parallel is None else max_parallel
        if limit < 1:
            raise ValueError("max_parallel must be at least 1")
        sem = asyncio.Semaphore(limit)

        async def _bounded(attempt: BatchAttempt) -> BatchResult:
            async with sem:
                return await self.dispatch_one(attempt)

        results = await asyncio.gather(*[_bounded(a) for a in attempts])
        return list(results)

    async def dispatch_one(self, attempt: BatchAttempt) -> BatchResult:
        """Execute a single batch attempt. Never raises for call failures."""

        batch = attempt.batch
        total = self.total_batches or (batch.index + 1)
        log_batch(self._label, batch.index, total, len(batch))
        self.calls += 1

        try:
            response = await self._remote.execute(batch)
        except ThrottledError as exc:
            self._tracker.observe(exc.throttle)
            logger.error("Throttle error on batch %d (attempt %d)", batch.index + 1, attempt.attempt)
            return BatchResult(
                batch=batch,
                attempt=attempt.attempt,
                outcome=BatchOutcome.THROTTLED,
                error=str(exc),
                response=exc.details,
                throttle=exc.throttle,
            )
        except RemoteCallError as exc:
            self._tracker.observe(exc.throttle)
            logger.error("Batch %d request error: %s", batch.index + 1, exc)
            return BatchResult(
                batch=batch,
                attempt=attempt.attempt,
                outcome=BatchOutcome.TRANSPORT_ERROR,
                error=str(exc),
                response=exc.details,
                throttle=exc.throttle,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Batch %d failed unexpectedly", batch.index + 1)
            return BatchResult(
                batch=batch,
                attempt=attempt.attempt,
                outcome=BatchOutcome.TRANSPORT_ERROR,
                error=repr(exc),
            )

        self._tracker.observe(response.throttle)

        if response.user_errors:
            logger.error("Batch %d userErrors: %s", batch.index + 1, response.user_errors)
            outcome = BatchOutcome.PARTIAL_USER_ERROR
        else:
            outcome = BatchOutcome.SUCCESS

        return BatchResult(
            batch=batch,
            attempt=attempt.attempt,
            outcome=outcome,
            response=response.data,
            user_errors=list(response.user_errors),
            throttle=response.throttle,
        )
