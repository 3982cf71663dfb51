"""Controllers package for shopbulk."""

from shopbulk.controllers.adaptive_batch import EngineConfig, run_adaptive_batch
from shopbulk.controllers.bulk_job import BulkJobOrchestrator, build_payload, run_bulk_job

__all__ = [
    "BulkJobOrchestrator",
    "EngineConfig",
    "build_payload",
    "run_adaptive_batch",
    "run_bulk_job",
]
