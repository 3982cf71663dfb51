"""Adaptive batch execution controller for shopbulk.

This module drives a list of independent mutation operations through a
throttled remote API as fast as the throttle budget allows, tolerating
partial failure.

Usage Pattern
-------------
1. **Build operations:**
   Create one ``Operation`` per logical mutation (e.g. one per inventory
   item). Operations are immutable and carry their own cost estimate.

2. **Run:**
   Call ``run_adaptive_batch(operations, remote, per_call_limit,
   alias_limit, per_call_cost)``. The controller partitions the operations,
   then repeats rounds until the queue is empty:

   - the concurrency controller sizes the round from the freshest throttle
     snapshot (probing and waiting while stuck),
   - the dispatcher issues the round concurrently and feeds throttle
     feedback back to the tracker,
   - the retry governor serially retries throttle-related failures.

   A round always completes, retries included, before the next round is
   sized.

3. **Read the result:**
   The returned ``RunResult`` holds the final result of every batch plus
   attempted/updated/failed counts and elapsed time. Per-batch failures
   never raise; only a run that cannot make progress raises
   ``FatalStuckError``, and a run in which every batch ended in a transport
   failure raises ``AllBatchesFailedError`` (carrying the full result).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.config import bulk_limits
from shopbulk.core.concurrency import ConcurrencyController
from shopbulk.core.dispatcher import BatchDispatcher
from shopbulk.core.exceptions import AllBatchesFailedError
from shopbulk.core.partitioner import partition
from shopbulk.core.retry import RetryGovernor
from shopbulk.core.scheduler import Scheduler
from shopbulk.core.throttle import ThrottleTracker
from shopbulk.models.batch import (
    BatchAttempt,
    BatchOutcome,
    BatchResult,
    Operation,
    RunResult,
    ThrottleState,
)
from shopbulk.utils.logger import get_logger, log_timing


logger = get_logger("shopbulk.engine")


def _default_throttle() -> ThrottleState:
    return ThrottleState(
        maximum_available=bulk_limits.DEFAULT_MAXIMUM_AVAILABLE,
        currently_available=bulk_limits.DEFAULT_CURRENTLY_AVAILABLE,
        restore_rate=bulk_limits.DEFAULT_RESTORE_RATE,
    )


@dataclass
class EngineConfig:
    """Tuning knobs for one run. Defaults come from ``bulk_limits``."""

    safety_factor: float = bulk_limits.SAFETY_FACTOR
    hard_cap: int = bulk_limits.HARD_PARALLEL_CAP
    stuck_delay: float = bulk_limits.STUCK_DELAY_SECONDS
    max_stuck_cycles: int = bulk_limits.MAX_STUCK_CYCLES
    require_full_budget: bool = False
    low_water_mark: float = bulk_limits.LOW_WATER_MARK
    retry_delay: float = bulk_limits.RETRY_DELAY_SECONDS
    max_attempts: int = bulk_limits.MAX_ATTEMPTS_PER_BATCH
    round_delay: float = bulk_limits.ROUND_DELAY_SECONDS
    probe_on_start: bool = True
    project_restore: bool = True
    initial_throttle: ThrottleState = field(default_factory=_default_throttle)


def _estimate_call_cost(queue: Deque[BatchAttempt], window: int) -> float:
    head = [queue[i].batch.estimated_cost for i in range(min(window, len(queue)))]
    return max(head) if head else 1.0


def summarize(
    results: List[BatchResult],
    elapsed_seconds: float,
    round_count: int,
    retry_count: int,
    throttle: Optional[ThrottleState],
) -> RunResult:
    """Aggregate final batch results into a ``RunResult``."""

    attempted = sum(len(r.batch) for r in results)
    updated = sum(r.succeeded_items for r in results)
    return RunResult(
        results=results,
        elapsed_seconds=round(elapsed_seconds, 2),
        attempted_count=attempted,
        updated_count=updated,
        failed_count=attempted - updated,
        batch_count=len(results),
        round_count=round_count,
        retry_count=retry_count,
        throttle=throttle,
    )


async def run_adaptive_batch(
    operations: Sequence[Operation],
    remote: RemoteMutationAPI,
    per_call_limit: int,
    alias_limit: int,
    per_call_cost: Optional[float] = None,
    *,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
    tracker: Optional[ThrottleTracker] = None,
    label: str = "ADAPTIVE_BATCH",
) -> RunResult:
    """Drive ``operations`` through ``remote`` in adaptive concurrent rounds.

    Args:
        operations: Operations in dispatch order.
        remote: Remote API executing one batch per call.
        per_call_limit: Item limit of a single call.
        alias_limit: Aliased sub-mutation limit of a single call.
        per_call_cost: Cost estimate per call. When None, the largest
                       estimated cost among the next candidate batches is used.
        config: Engine tuning; defaults from ``bulk_limits``.
        scheduler: Clock and delays; real time by default.
        tracker: Throttle tracker to share; a fresh one is created otherwise.
        label: Operation label used in log lines.

    Returns:
        The aggregate ``RunResult``.

    Raises:
        FatalStuckError: The budget never recovered within the stuck bound.
        AllBatchesFailedError: Every batch ended in a transport failure.
    """

    config = config or EngineConfig()
    scheduler = scheduler or Scheduler()
    started = scheduler.monotonic()

    batches = partition(operations, per_call_limit, alias_limit)
    logger.info("[%s] Starting: %d operation(s) in %d batch(es)", label, len(operations), len(batches))
    if not batches:
        return summarize([], 0.0, 0, 0, None)

    if tracker is None:
        tracker = ThrottleTracker(
            config.initial_throttle,
            probe_fn=remote.probe_throttle,
            scheduler=scheduler,
            project_restore=config.project_restore,
            label=label,
        )
    if config.probe_on_start:
        await tracker.probe()

    controller = ConcurrencyController(
        safety_factor=config.safety_factor,
        hard_cap=config.hard_cap,
        stuck_delay=config.stuck_delay,
        max_stuck_cycles=config.max_stuck_cycles,
        require_full_budget=config.require_full_budget,
        scheduler=scheduler,
    )
    dispatcher = BatchDispatcher(remote, tracker, label=label, total_batches=len(batches))
    governor = RetryGovernor(
        low_water_mark=config.low_water_mark,
        retry_delay=config.retry_delay,
        max_attempts=config.max_attempts,
        scheduler=scheduler,
    )

    queue: Deque[BatchAttempt] = deque(BatchAttempt(batch=b) for b in batches)
    final: Dict[int, BatchResult] = {}
    rounds = 0

    while queue:
        cost = per_call_cost if per_call_cost is not None else _estimate_call_cost(queue, config.hard_cap)
        decision = await controller.next_round(len(queue), tracker, cost)

        round_attempts = [queue.popleft() for _ in range(decision.batches_this_round)]
        tracker.debit(decision.batches_this_round * cost)

        round_started = scheduler.monotonic()
        results = await dispatcher.dispatch_round(round_attempts, max_parallel=decision.max_parallel)
        results, _ = await governor.resolve(results, dispatcher)
        for result in results:
            final[result.batch.index] = result

        rounds += 1
        log_timing(
            f"{label}_ROUND_{rounds}",
            scheduler.monotonic() - round_started,
            f"{len(round_attempts)} batch(es), parallel={decision.max_parallel}",
        )

        if queue and config.round_delay > 0:
            await scheduler.sleep(config.round_delay)

    ordered = [final[b.index] for b in batches]
    run = summarize(
        ordered,
        scheduler.monotonic() - started,
        rounds,
        governor.retries,
        tracker.budget(),
    )
    log_timing(label, run.elapsed_seconds, f"{run.attempted_count} items, {run.updated_count} updated")

    if all(r.outcome == BatchOutcome.TRANSPORT_ERROR for r in ordered):
        raise AllBatchesFailedError(
            f"All {len(ordered)} batch(es) failed with transport errors",
            result=run,
        )

    return run
