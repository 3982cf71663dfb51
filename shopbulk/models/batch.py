"""Batch execution models for shopbulk.

These dataclasses describe the units of work that flow through the adaptive
batch engine: operations, batches and their attempts, throttle snapshots and
per-batch results. They are deliberately free of any Shopify specifics so
the engine can drive any mutation kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Operation:
    """One logical mutation (e.g. "set quantity of item X at location Y to N").

    Attributes:
        kind: Mutation kind name (see ``shopbulk.adapters.registry``).
        target_id: Primary identifier the operation applies to.
        payload: Mutation fields for this operation.
        cost: Estimated throttle cost in points.
        group: Alias key. Consecutive operations sharing a group are sent as
               one aliased sub-mutation. ``None`` means the kind's native
               bulk form, where a whole batch is one sub-mutation.
    """

    kind: str
    target_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    cost: float = 10.0
    group: Optional[str] = None


@dataclass(frozen=True)
class Batch:
    """An ordered, non-empty group of operations sent as one network call."""

    index: int
    operations: Tuple[Operation, ...]

    def __post_init__(self) -> None:
        if not self.operations:
            raise ValueError("A batch must contain at least one operation")

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def kind(self) -> str:
        return self.operations[0].kind

    @property
    def aliases(self) -> List[Tuple[Operation, ...]]:
        """Split the batch into consecutive alias segments."""

        segments: List[Tuple[Operation, ...]] = []
        current: List[Operation] = []
        for op in self.operations:
            if current and op.group != current[-1].group:
                segments.append(tuple(current))
                current = []
            current.append(op)
        if current:
            segments.append(tuple(current))
        return segments

    @property
    def estimated_cost(self) -> float:
        return float(sum(op.cost for op in self.operations))


@dataclass(frozen=True)
class BatchAttempt:
    """One dispatch attempt of a batch. Content never changes between attempts."""

    batch: Batch
    attempt: int = 1

    def next_attempt(self) -> "BatchAttempt":
        return replace(self, attempt=self.attempt + 1)


@dataclass(frozen=True)
class ThrottleState:
    """Leaky-bucket snapshot as reported by the remote API.

    Attributes:
        maximum_available: Bucket capacity in points.
        currently_available: Points available right now.
        restore_rate: Points restored per second.
    """

    maximum_available: float
    currently_available: float
    restore_rate: float

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> Optional["ThrottleState"]:
        """Build a snapshot from a ``throttleStatus`` block, or None if absent."""

        if not isinstance(payload, Mapping):
            return None
        try:
            return cls(
                maximum_available=float(payload["maximumAvailable"]),
                currently_available=float(payload["currentlyAvailable"]),
                restore_rate=float(payload["restoreRate"]),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self) -> Dict[str, float]:
        return {
            "maximumAvailable": self.maximum_available,
            "currentlyAvailable": self.currently_available,
            "restoreRate": self.restore_rate,
        }


class BatchOutcome(str, Enum):
    """How a single batch call ended."""

    SUCCESS = "success"
    PARTIAL_USER_ERROR = "partial_user_error"
    THROTTLED = "throttled"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class ExecutionResponse:
    """What the remote collaborator reports for one successful call.

    Attributes:
        data: Decoded response payload.
        user_errors: Item-level rejections embedded in the response.
        throttle: Throttle snapshot attached to the response, if any.
    """

    data: Any = None
    user_errors: List[Dict[str, Any]] = field(default_factory=list)
    throttle: Optional[ThrottleState] = None


@dataclass
class BatchResult:
    """Result of one batch attempt, produced by the dispatcher."""

    batch: Batch
    attempt: int
    outcome: BatchOutcome
    response: Any = None
    error: Optional[str] = None
    user_errors: List[Dict[str, Any]] = field(default_factory=list)
    throttle: Optional[ThrottleState] = None

    @property
    def is_success(self) -> bool:
        return self.outcome in (BatchOutcome.SUCCESS, BatchOutcome.PARTIAL_USER_ERROR)

    @property
    def succeeded_items(self) -> int:
        # Each user error rejects at most one item of the batch.
        if self.outcome == BatchOutcome.SUCCESS:
            return len(self.batch)
        if self.outcome == BatchOutcome.PARTIAL_USER_ERROR:
            return max(0, len(self.batch) - len(self.user_errors))
        return 0

    @property
    def failed_items(self) -> int:
        return len(self.batch) - self.succeeded_items

    def as_attempt(self) -> BatchAttempt:
        return BatchAttempt(batch=self.batch, attempt=self.attempt)


@dataclass(frozen=True)
class RoundDecision:
    """Concurrency decision for the next round."""

    batches_this_round: int
    max_parallel: int
    new_available_estimate: float
    stuck: bool = False


@dataclass
class RunResult:
    """Aggregate result of one adaptive batch run."""

    results: List[BatchResult]
    elapsed_seconds: float
    attempted_count: int
    updated_count: int
    failed_count: int
    batch_count: int
    round_count: int
    retry_count: int
    throttle: Optional[ThrottleState] = None

    @property
    def failed_results(self) -> List[BatchResult]:
        return [r for r in self.results if r.outcome != BatchOutcome.SUCCESS]
