"""Presenters package for shopbulk."""

from shopbulk.presenters.run_presenter import (
    present_batch_result,
    present_bulk_job,
    present_errors,
    present_run,
)

__all__ = [
    "present_batch_result",
    "present_bulk_job",
    "present_errors",
    "present_run",
]
