"""Exceptions raised by the shopbulk engine.

Per-batch and per-item failures are never raised: the dispatcher records them
in ``BatchResult`` objects. Only conditions that end a whole run or a bulk
job setup surface as exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from shopbulk.models.batch import RunResult, ThrottleState


class ShopbulkError(Exception):
    """Base exception for shopbulk."""

    pass


class RemoteCallError(ShopbulkError):
    """A call to the remote API failed as a whole.

    Attributes:
        throttle: Throttle snapshot attached to the failed response, if any.
        details: Raw error payload for diagnostics.
    """

    def __init__(
        self,
        message: str,
        throttle: Optional["ThrottleState"] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.throttle = throttle
        self.details = details


class ThrottledError(RemoteCallError):
    """The remote explicitly rejected the call because of its rate limit.

    Retry-eligible.
    """

    pass


class TransportError(RemoteCallError):
    """Network failure, 5xx, or a call rejected as a whole. Not auto-retried."""

    pass


class FatalStuckError(ShopbulkError):
    """The throttle budget never recovered within the stuck-cycle bound."""

    def __init__(self, message: str, cycles: int, throttle: Optional["ThrottleState"] = None) -> None:
        super().__init__(message)
        self.cycles = cycles
        self.throttle = throttle


class AllBatchesFailedError(ShopbulkError):
    """Every batch of a run ended in a transport failure after all retries."""

    def __init__(self, message: str, result: "RunResult") -> None:
        super().__init__(message)
        self.result = result


class BulkJobError(ShopbulkError):
    """A bulk job setup step failed. No remote job was started."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class StagingError(BulkJobError):
    """The remote refused to provide a staged upload target."""

    pass


class UploadError(BulkJobError):
    """Uploading the staged payload failed."""

    pass


class JobStartError(BulkJobError):
    """The remote refused to create the bulk job."""

    pass


class CacheMissingError(ShopbulkError):
    """The product snapshot cache does not exist yet."""

    pass
