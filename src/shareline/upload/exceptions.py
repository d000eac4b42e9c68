"""Exception types for the upload queue."""

from __future__ import annotations


class UploadQueueError(Exception):
    """Base class for upload queue errors."""


class TransferError(UploadQueueError):
    """The transfer endpoint reported a failure (network or server side).

    Absorbed into task state by the executor; never escapes the worker loop.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or ""
        super().__init__(self.reason)


class InvalidTransitionError(UploadQueueError):
    """A status change is not legal for the task's current status."""

    def __init__(self, task_id: str, current: str, target: str) -> None:
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(
            f"Task {task_id}: cannot move from {current!r} to {target!r}"
        )


class TaskNotFoundError(UploadQueueError, KeyError):
    """No task with the given id exists in the store."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(task_id)

    def __str__(self) -> str:
        return f"Unknown upload task {self.task_id!r}"
