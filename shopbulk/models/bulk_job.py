"""Models for remote asynchronous bulk jobs and staged uploads."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class BulkJobStatus(str, Enum):
    """Bulk operation states reported by the remote API."""

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    CANCELING = "CANCELING"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            BulkJobStatus.COMPLETED,
            BulkJobStatus.FAILED,
            BulkJobStatus.CANCELED,
            BulkJobStatus.EXPIRED,
        )


@dataclass
class BulkJob:
    """Handle to a remote bulk operation. The remote side owns its lifecycle."""

    id: str
    status: BulkJobStatus
    object_count: Optional[int] = None
    url: Optional[str] = None
    type: Optional[str] = None
    error_code: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    root_object_count: Optional[int] = None
    file_size: Optional[int] = None
    partial_data_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BulkJob":
        raw_status = str(payload.get("status") or BulkJobStatus.CREATED.value).upper()
        try:
            status = BulkJobStatus(raw_status)
        except ValueError:
            status = BulkJobStatus.RUNNING

        return cls(
            id=str(payload.get("id") or ""),
            status=status,
            object_count=_as_int(payload.get("objectCount")),
            url=payload.get("url"),
            type=payload.get("type"),
            error_code=payload.get("errorCode"),
            created_at=payload.get("createdAt"),
            completed_at=payload.get("completedAt"),
            root_object_count=_as_int(payload.get("rootObjectCount")),
            file_size=_as_int(payload.get("fileSize")),
            partial_data_url=payload.get("partialDataUrl"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class StagedUploadTarget:
    """Remote-provided upload target. Parameters keep the order the remote gave."""

    url: str
    parameters: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    resource_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StagedUploadTarget":
        params: List[Tuple[str, str]] = []
        for p in payload.get("parameters") or []:
            if isinstance(p, Mapping) and "name" in p:
                params.append((str(p["name"]), str(p.get("value", ""))))
        return cls(
            url=str(payload.get("url") or ""),
            parameters=tuple(params),
            resource_url=payload.get("resourceUrl"),
        )

    @property
    def path_key(self) -> Optional[str]:
        for name, value in self.parameters:
            if name == "key":
                return value
        return None


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
