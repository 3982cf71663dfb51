"""Run result presenter for shopbulk.

This module is a pure presentation layer: it turns engine results and bulk
job handles into JSON-safe dicts for HTTP responses. It has no business
logic and no side effects.
"""

from typing import Any, Dict, List, Optional

from shopbulk.models.batch import BatchResult, RunResult
from shopbulk.models.bulk_job import BulkJob

MAX_LISTED_ERRORS = 10


def present_batch_result(result: BatchResult) -> Dict[str, Any]:
    """Describe one batch's final attempt."""

    data: Dict[str, Any] = {
        "batch": result.batch.index + 1,
        "size": len(result.batch),
        "attempt": result.attempt,
        "outcome": result.outcome.value,
        "updated": result.succeeded_items,
    }
    if result.error:
        data["error"] = result.error
    if result.user_errors:
        data["userErrors"] = result.user_errors
    return data


def present_errors(results: List[BatchResult]) -> Dict[str, Any]:
    """Compact failure listing: the first 10 failed batches and an overflow count.

    Example:
        >>> present_errors([])
        {'count': 0, 'errors': []}
    """

    failed = [present_batch_result(r) for r in results]
    data: Dict[str, Any] = {"count": len(failed), "errors": failed[:MAX_LISTED_ERRORS]}
    if len(failed) > MAX_LISTED_ERRORS:
        data["more"] = f"... and {len(failed) - MAX_LISTED_ERRORS} more error(s)."
    return data


def present_run(run: RunResult) -> Dict[str, Any]:
    """Convert a ``RunResult`` into the response body of an engine endpoint.

    Args:
        run: The aggregate result returned by ``run_adaptive_batch``.

    Returns:
        A dict with item counts, batch/round/retry counts, elapsed seconds,
        the last known throttle state and a compact failure listing.
    """

    return {
        "success": run.failed_count == 0,
        "attempted": run.attempted_count,
        "updated": run.updated_count,
        "failed": run.failed_count,
        "batches": run.batch_count,
        "rounds": run.round_count,
        "retries": run.retry_count,
        "elapsedSeconds": run.elapsed_seconds,
        "throttle": run.throttle.to_dict() if run.throttle else None,
        "failures": present_errors(run.failed_results),
    }


def present_bulk_job(job: Optional[BulkJob]) -> Optional[Dict[str, Any]]:
    if job is None:
        return None
    data = job.to_dict()
    data["done"] = job.status.is_terminal
    return data
