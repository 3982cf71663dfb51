"""In-memory remote mutation API shared by the test modules."""

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.models.batch import Batch, ExecutionResponse, ThrottleState
from shopbulk.models.bulk_job import BulkJob, BulkJobStatus, StagedUploadTarget


def throttle(available: float, maximum: float = 20000.0, restore: float = 0.0) -> ThrottleState:
    return ThrottleState(maximum_available=maximum, currently_available=available, restore_rate=restore)


Responder = Callable[[Batch, int], ExecutionResponse]


class FakeRemote(RemoteMutationAPI):
    """Scripted remote.

    ``responder(batch, call_number)`` returns the response for each call or
    raises a ``RemoteCallError``. By default every call succeeds and reports
    ``call_throttle``.
    """

    def __init__(
        self,
        responder: Optional[Responder] = None,
        call_throttle: Optional[ThrottleState] = None,
        probe_throttle_state: Optional[ThrottleState] = None,
        staged_target: Optional[StagedUploadTarget] = None,
        staging_error: Optional[Exception] = None,
        upload_error: Optional[Exception] = None,
        start_error: Optional[Exception] = None,
        job: Optional[BulkJob] = None,
    ) -> None:
        self._responder = responder
        self._call_throttle = call_throttle
        self._probe_state = probe_throttle_state
        self.staged_target = staged_target or StagedUploadTarget(
            url="https://uploads.example.com/",
            parameters=(("key", "tmp/bulk/payload.jsonl"), ("policy", "abc")),
            resource_url=None,
        )
        self.staging_error = staging_error
        self.upload_error = upload_error
        self.start_error = start_error
        self.job = job or BulkJob(id="gid://shopify/BulkOperation/1", status=BulkJobStatus.CREATED)

        self.executed: List[Batch] = []
        self.probe_calls = 0
        self.uploads: List[Tuple[str, Sequence[Tuple[str, str]], Path, bool, str]] = []
        self.started: List[Tuple[str, str]] = []

    async def execute(self, batch: Batch) -> ExecutionResponse:
        self.executed.append(batch)
        if self._responder is not None:
            return self._responder(batch, len(self.executed))
        return ExecutionResponse(data={}, throttle=self._call_throttle)

    async def probe_throttle(self) -> Optional[ThrottleState]:
        self.probe_calls += 1
        return self._probe_state

    async def create_staged_upload(self, filename: str, mime_type: str) -> StagedUploadTarget:
        if self.staging_error is not None:
            raise self.staging_error
        return self.staged_target

    async def upload_file(self, url: str, parameters: Sequence[Tuple[str, str]], path: Path) -> None:
        exists = path.exists()
        content = path.read_text(encoding="utf-8") if exists else ""
        self.uploads.append((url, parameters, path, exists, content))
        if self.upload_error is not None:
            raise self.upload_error

    async def start_async_job(self, mutation_template: str, path_key: str) -> BulkJob:
        self.started.append((mutation_template, path_key))
        if self.start_error is not None:
            raise self.start_error
        return self.job

    async def get_job_status(self) -> Optional[BulkJob]:
        return self.job
