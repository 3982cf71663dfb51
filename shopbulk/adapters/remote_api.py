"""Remote mutation API interface for shopbulk.

This module defines the contract the batch engine and the bulk job
orchestrator consume. It keeps a clean separation between:
- Remote-specific logic (request building, authentication, parsing)
- Engine logic (partitioning, round sizing, retries, job staging)

The engine never builds GraphQL documents and never inspects raw responses;
adapters never decide concurrency or retries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence, Tuple

from shopbulk.models.batch import Batch, ExecutionResponse, ThrottleState
from shopbulk.models.bulk_job import BulkJob, StagedUploadTarget


class RemoteMutationAPI(ABC):
    """Abstract base class for remote APIs driven by the engine."""

    @abstractmethod
    async def execute(self, batch: Batch) -> ExecutionResponse:
        """Execute one batch as exactly one network call.

        Item-level rejections must be returned in ``user_errors``, not raised.

        Raises:
            ThrottledError: The remote rejected the call because of its rate limit.
            TransportError: Network failure, 5xx, or the call was rejected as a whole.
        """
        pass

    @abstractmethod
    async def probe_throttle(self) -> Optional[ThrottleState]:
        """Perform a minimal-cost call and return its throttle snapshot.

        Returns None when the probe fails; probing never raises.
        """
        pass

    @abstractmethod
    async def create_staged_upload(self, filename: str, mime_type: str) -> StagedUploadTarget:
        """Request an upload target for a bulk payload.

        Raises:
            StagingError: If the remote refuses.
        """
        pass

    @abstractmethod
    async def upload_file(
        self,
        url: str,
        parameters: Sequence[Tuple[str, str]],
        path: Path,
    ) -> None:
        """Upload ``path`` to ``url`` using exactly the given form parameters.

        Raises:
            UploadError: If the transfer is rejected.
        """
        pass

    @abstractmethod
    async def start_async_job(self, mutation_template: str, path_key: str) -> BulkJob:
        """Start a bulk mutation job over an uploaded payload.

        Raises:
            JobStartError: If the remote refuses to create the job.
        """
        pass

    @abstractmethod
    async def get_job_status(self) -> Optional[BulkJob]:
        """Return the current bulk job, or None if there is none."""
        pass
