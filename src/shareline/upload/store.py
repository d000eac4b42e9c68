"""In-memory ordered store of upload tasks.

The store is the single source of truth read by the scheduler, executor and
presentation layer.  Every mutation goes through the methods below; there is
no snapshotting, so a read right after a write always sees that write.

Invariants enforced here:

* at most one task is ``uploading`` at any instant
* ``cancel_handle`` is set if and only if the task is ``uploading``
* only terminal tasks (``done``, ``error``, ``canceled``) can be removed
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator
from enum import Enum

from shareline.models import TERMINAL_STATUSES, TaskStatus, UploadReceipt, UploadTask
from shareline.upload.cancellation import CancellationHandle
from shareline.upload.exceptions import InvalidTransitionError, TaskNotFoundError
from shareline.upload.fsm import is_transition_allowed

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Upload failed"


class ChangeKind(str, Enum):
    """Kind of store mutation delivered to listeners."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


StoreListener = Callable[[ChangeKind, UploadTask], None]


class TaskStore:
    """Ordered collection of :class:`UploadTask` keyed by task id.

    Iteration order is admission order.  Scheduling order is kept separately
    in ``UploadTask.queued_seq``, which is re-stamped every time a task
    (re-)enters ``queued``.

    Usage::

        store = TaskStore()
        store.append(task)
        store.update_status(task.id, TaskStatus.UPLOADING, cancel_handle=handle)
        store.update_progress(task.id, 40)
    """

    def __init__(self) -> None:
        self._tasks: dict[str, UploadTask] = {}
        self._seq = itertools.count(1)
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[UploadTask]:
        return iter(list(self._tasks.values()))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get(self, task_id: str) -> UploadTask:
        """Return the live task for *task_id*.

        Raises:
            TaskNotFoundError: If no such task exists.
        """
        try:
            return self._tasks[task_id]
        except KeyError:
            raise TaskNotFoundError(task_id) from None

    def list_where(self, predicate: Callable[[UploadTask], bool]) -> list[UploadTask]:
        """All tasks matching *predicate*, in admission order."""
        return [t for t in self._tasks.values() if predicate(t)]

    def list_by_status(self, *statuses: TaskStatus) -> list[UploadTask]:
        wanted = set(statuses)
        return self.list_where(lambda t: t.status in wanted)

    def first_where(self, predicate: Callable[[UploadTask], bool]) -> UploadTask | None:
        """First task in admission order matching *predicate*, or None."""
        return next((t for t in self._tasks.values() if predicate(t)), None)

    def count(self, *statuses: TaskStatus) -> int:
        return len(self.list_by_status(*statuses))

    def active(self) -> UploadTask | None:
        """The task currently uploading, if any."""
        return self.first_where(lambda t: t.status == TaskStatus.UPLOADING)

    def next_queued(self) -> UploadTask | None:
        """The queued task that became ``queued`` earliest."""
        queued = self.list_by_status(TaskStatus.QUEUED)
        if not queued:
            return None
        return min(queued, key=lambda t: t.queued_seq)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, task: UploadTask) -> None:
        """Add a freshly admitted ``queued`` task at the end of the store."""
        if task.id in self._tasks:
            raise ValueError(f"Duplicate task id {task.id!r}")
        if task.status != TaskStatus.QUEUED:
            raise InvalidTransitionError(task.id, "new", task.status.value)
        task.queued_seq = next(self._seq)
        self._tasks[task.id] = task
        self._notify(ChangeKind.ADDED, task)

    def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        cancel_handle: CancellationHandle | None = None,
        error_message: str | None = None,
    ) -> UploadTask:
        """Move a task to *status*, applying the side effects of that status.

        Raises:
            TaskNotFoundError: Unknown task id.
            InvalidTransitionError: Illegal lifecycle step, or a second
                task trying to enter ``uploading``.
            ValueError: Entering ``uploading`` without a cancellation handle.
        """
        task = self.get(task_id)
        if not is_transition_allowed(task.status, status):
            raise InvalidTransitionError(task_id, task.status.value, status.value)

        if status == TaskStatus.UPLOADING:
            if cancel_handle is None:
                raise ValueError("Entering 'uploading' requires a cancellation handle")
            current = self.active()
            if current is not None:
                raise InvalidTransitionError(
                    task_id, task.status.value, f"uploading (busy with {current.id})"
                )
            task.cancel_handle = cancel_handle
            task.progress = 0
            task.error_message = None
            task.attempts += 1
        else:
            task.cancel_handle = None

        if status == TaskStatus.DONE:
            task.progress = 100
        elif status == TaskStatus.ERROR:
            task.error_message = error_message or DEFAULT_ERROR_MESSAGE
        elif status == TaskStatus.QUEUED:
            task.error_message = None
            task.queued_seq = next(self._seq)

        previous = task.status
        task.status = status
        logger.debug("Task %s: %s -> %s", task_id, previous.value, status.value)
        self._notify(ChangeKind.UPDATED, task)
        return task

    def update_progress(self, task_id: str, percent: int) -> None:
        """Record transfer progress; ignored unless the task is uploading."""
        task = self.get(task_id)
        if task.status != TaskStatus.UPLOADING:
            return
        percent = max(0, min(100, int(percent)))
        if percent == task.progress:
            return
        task.progress = percent
        self._notify(ChangeKind.UPDATED, task)

    def update_error(self, task_id: str, message: str | None) -> UploadTask:
        """Shorthand for the ``uploading -> error`` transition."""
        return self.update_status(task_id, TaskStatus.ERROR, error_message=message)

    def set_receipt(self, task_id: str, receipt: UploadReceipt | None) -> None:
        self.get(task_id).receipt = receipt

    def remove(self, task_id: str) -> UploadTask:
        """Delete a terminal task from the store.

        Raises:
            InvalidTransitionError: If the task is still queued or uploading.
        """
        task = self.get(task_id)
        if task.status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(task_id, task.status.value, "removed")
        del self._tasks[task_id]
        self._notify(ChangeKind.REMOVED, task)
        return task

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StoreListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, kind: ChangeKind, task: UploadTask) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, task)
            except Exception:
                logger.exception("Store listener %r failed on %s", listener, kind.value)
