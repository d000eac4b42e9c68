"""Data models and enums for the Shareline upload queue."""

from __future__ import annotations

import io
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from shareline.upload.cancellation import CancellationHandle


class TaskStatus(str, Enum):
    """Status of an upload task in the queue."""

    QUEUED = "queued"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"
    CANCELED = "canceled"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.DONE, TaskStatus.ERROR, TaskStatus.CANCELED}
)


class RejectionReason(str, Enum):
    """Why a payload was refused at admission time."""

    CAPACITY = "capacity"
    SIZE = "size"


class OutcomeKind(str, Enum):
    """Terminal result of a single transfer attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class Payload:
    """A user-selected file to transfer.

    ``source`` is either a filesystem path or the raw bytes.  Every call to
    :meth:`open` returns a fresh stream positioned at the start, so a retried
    task re-reads the same data.
    """

    name: str
    size: int
    source: Path | bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Path | str) -> Payload:
        """Build a payload from a file on disk."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            source=path,
            content_type=content_type or "application/octet-stream",
        )

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> Payload:
        """Build an in-memory payload."""
        return cls(name=name, size=len(data), source=data, content_type=content_type)

    def open(self) -> BinaryIO:
        """Open a new binary stream over the payload data."""
        if isinstance(self.source, bytes):
            return io.BytesIO(self.source)
        return open(self.source, "rb")


class UploadReceipt(BaseModel):
    """Server acknowledgement returned for a completed upload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | str | None = None
    filename: str | None = None
    original_filename: str | None = Field(default=None, alias="originalFilename")
    file_size: int | None = Field(default=None, alias="fileSize")
    message: str | None = None


@dataclass(eq=False)
class UploadTask:
    """One admitted payload tracked through its lifecycle.

    Fields are mutated only through :class:`~shareline.upload.store.TaskStore`.
    """

    id: str
    payload: Payload
    status: TaskStatus = TaskStatus.QUEUED
    progress: int = 0
    error_message: str | None = None
    cancel_handle: CancellationHandle | None = None
    receipt: UploadReceipt | None = None
    attempts: int = 0
    queued_seq: int = 0

    @property
    def name(self) -> str:
        return self.payload.name

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True, slots=True)
class AdmissionRejection:
    """A payload that did not become a task."""

    payload: Payload
    reason: RejectionReason


@dataclass
class AdmissionResult:
    """Outcome of a single ``admit`` call.

    The presentation layer renders user-facing messages from the counts.
    """

    admitted: list[UploadTask] = field(default_factory=list)
    dropped_for_capacity: int = 0
    dropped_for_size: int = 0
    rejections: list[AdmissionRejection] = field(default_factory=list)

    @property
    def admitted_count(self) -> int:
        return len(self.admitted)

    @property
    def rejected_count(self) -> int:
        return self.dropped_for_capacity + self.dropped_for_size


@dataclass(frozen=True, slots=True)
class TransferOutcome:
    """Result of :meth:`TransferExecutor.execute`."""

    kind: OutcomeKind
    reason: str | None = None

    @classmethod
    def success(cls) -> TransferOutcome:
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def failure(cls, reason: str) -> TransferOutcome:
        return cls(OutcomeKind.FAILURE, reason)

    @classmethod
    def canceled(cls) -> TransferOutcome:
        return cls(OutcomeKind.CANCELED)
