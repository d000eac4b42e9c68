"""User-initiated recovery and cleanup operations.

* ``retry``  -- requeue a task that ended in ``error`` (same id, same payload)
* ``cancel`` -- abort the task that is currently uploading
* ``clear_finished`` -- drop every terminal task from the store

Retries are manual and unbounded; nothing here schedules one automatically.
"""

from __future__ import annotations

import logging

from shareline.models import TERMINAL_STATUSES, TaskStatus, UploadTask
from shareline.upload.scheduler import UploadScheduler
from shareline.upload.store import TaskStore

logger = logging.getLogger(__name__)


class RecoveryController:
    """Retry, cancel and cleanup on top of the store and scheduler."""

    def __init__(self, store: TaskStore, scheduler: UploadScheduler) -> None:
        self._store = store
        self._scheduler = scheduler

    def retry(self, task_id: str) -> bool:
        """Transition an ERROR task back to QUEUED and wake the worker.

        Returns:
            True if the task was requeued, False if it was not in ``error``.

        Raises:
            TaskNotFoundError: Unknown task id.
        """
        task = self._store.get(task_id)
        if task.status != TaskStatus.ERROR:
            logger.debug("Ignoring retry of %s in status %s", task_id, task.status.value)
            return False
        self._store.update_status(task_id, TaskStatus.QUEUED)
        logger.info("Requeued %s for retry", task.name)
        self._scheduler.trigger()
        return True

    def retry_all_failed(self) -> int:
        """Requeue every ERROR task in store order; returns how many."""
        failed = self._store.list_by_status(TaskStatus.ERROR)
        return sum(1 for task in failed if self.retry(task.id))

    def cancel(self, task_id: str) -> bool:
        """Signal the cancellation handle of an UPLOADING task.

        The status change to ``canceled`` is made by the executor once the
        transfer has actually been aborted.

        Returns:
            True if a cancellation was requested.
        """
        task = self._store.get(task_id)
        if task.status != TaskStatus.UPLOADING or task.cancel_handle is None:
            logger.debug("Ignoring cancel of %s in status %s", task_id, task.status.value)
            return False
        task.cancel_handle.cancel()
        logger.info("Cancellation requested for %s", task.name)
        return True

    def clear_finished(self) -> list[UploadTask]:
        """Remove all DONE, ERROR and CANCELED tasks.

        Queued and uploading tasks are untouched and keep their order.

        Returns:
            The removed tasks, in store order.
        """
        finished = self._store.list_by_status(*TERMINAL_STATUSES)
        for task in finished:
            self._store.remove(task.id)
        if finished:
            logger.info("Cleared %d finished tasks", len(finished))
        return finished
