"""Bulk job orchestration for shopbulk.

For workloads the remote runs asynchronously, the orchestrator walks a
fixed state machine and hands the job off to the remote:

    BUILD_PAYLOAD -> STAGE_UPLOAD -> UPLOAD -> START_JOB -> CLEANUP

The local JSONL payload file is always deleted once it has been written,
whether staging, upload or job start succeeded or not. Polling the job is
left to the caller through ``status()``.
"""

from __future__ import annotations

import json
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.core.exceptions import BulkJobError, StagingError
from shopbulk.models.bulk_job import BulkJob
from shopbulk.utils.logger import get_logger


logger = get_logger("shopbulk.bulk_job")


class BulkJobStage(str, Enum):
    BUILD_PAYLOAD = "BUILD_PAYLOAD"
    STAGE_UPLOAD = "STAGE_UPLOAD"
    UPLOAD = "UPLOAD"
    START_JOB = "START_JOB"
    CLEANUP = "CLEANUP"
    DONE = "DONE"


def build_payload(records: Iterable[Mapping[str, Any]]) -> List[str]:
    """Serialize one independent JSON line per mutation invocation."""

    return [json.dumps(dict(record), ensure_ascii=False) for record in records]


class BulkJobOrchestrator:
    """Stage, upload and start remote bulk mutation jobs.

    Args:
        remote: Remote API providing staging, upload and job start.
        staging_dir: Directory for the transient payload file; the system
                     temp directory by default.
        mime_type: Declared payload mime type.
    """

    def __init__(
        self,
        remote: RemoteMutationAPI,
        staging_dir: Optional[Path] = None,
        mime_type: str = "text/jsonl",
    ) -> None:
        self._remote = remote
        self._staging_dir = staging_dir
        self._mime_type = mime_type
        self.stage = BulkJobStage.BUILD_PAYLOAD
        self.last_payload_path: Optional[Path] = None

    def _write_payload(self, lines: List[str], filename: str) -> Path:
        stem = Path(filename).stem or "bulk_payload"
        fd, raw_path = tempfile.mkstemp(prefix=f"{stem}_", suffix=".jsonl", dir=self._staging_dir)
        path = Path(raw_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write("\n".join(lines))
        except (OSError, UnicodeError) as exc:
            path.unlink(missing_ok=True)
            raise BulkJobError(f"Could not write bulk payload: {exc}") from exc
        return path

    async def run(
        self,
        records: Iterable[Mapping[str, Any]],
        mutation_template: str,
        filename: str = "bulk_payload.jsonl",
    ) -> BulkJob:
        """Start a remote bulk job over ``records`` and return its handle.

        Raises:
            BulkJobError: The payload is empty or could not be written.
            StagingError: No upload target was provided.
            UploadError: The payload upload was rejected.
            JobStartError: The remote refused to create the job.
        """

        self.stage = BulkJobStage.BUILD_PAYLOAD
        lines = build_payload(records)
        if not lines:
            raise BulkJobError("Bulk payload is empty; nothing to submit")

        path = self._write_payload(lines, filename)
        self.last_payload_path = path
        logger.info("Generated %s with %d line(s)", path.name, len(lines))

        try:
            self.stage = BulkJobStage.STAGE_UPLOAD
            target = await self._remote.create_staged_upload(filename, self._mime_type)
            if not target.path_key:
                raise StagingError("Staged upload target has no key parameter")

            self.stage = BulkJobStage.UPLOAD
            logger.info("Uploading %s to staged target", filename)
            await self._remote.upload_file(target.url, target.parameters, path)

            self.stage = BulkJobStage.START_JOB
            job = await self._remote.start_async_job(mutation_template, target.path_key)
        finally:
            self.stage = BulkJobStage.CLEANUP
            path.unlink(missing_ok=True)
            logger.info("Removed staged payload %s", path.name)

        self.stage = BulkJobStage.DONE
        logger.info("Bulk operation started: %s (%s)", job.id, job.status.value)
        return job

    async def status(self) -> Optional[BulkJob]:
        """Return the remote's current bulk job, if any."""

        return await self._remote.get_job_status()


async def run_bulk_job(
    records: Iterable[Mapping[str, Any]],
    mutation_template: str,
    remote: RemoteMutationAPI,
    filename: str = "bulk_payload.jsonl",
    staging_dir: Optional[Path] = None,
) -> BulkJob:
    """Convenience wrapper: build an orchestrator and run one job."""

    orchestrator = BulkJobOrchestrator(remote, staging_dir=staging_dir)
    return await orchestrator.run(records, mutation_template, filename=filename)
