"""Models package for shopbulk."""

from shopbulk.models.batch import (
    Batch,
    BatchAttempt,
    BatchOutcome,
    BatchResult,
    ExecutionResponse,
    Operation,
    RoundDecision,
    RunResult,
    ThrottleState,
)
from shopbulk.models.bulk_job import BulkJob, BulkJobStatus, StagedUploadTarget

__all__ = [
    "Batch",
    "BatchAttempt",
    "BatchOutcome",
    "BatchResult",
    "BulkJob",
    "BulkJobStatus",
    "ExecutionResponse",
    "Operation",
    "RoundDecision",
    "RunResult",
    "StagedUploadTarget",
    "ThrottleState",
]
