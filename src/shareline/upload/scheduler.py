"""Single-worker scheduler for the upload queue.

At most one worker loop runs at a time.  The loop repeatedly picks the task
that became ``queued`` earliest, hands it to the executor and awaits the
terminal outcome before looking again; it exits once nothing is queued.
Triggering while a worker is active is a no-op, so every admission and
retry can call :meth:`UploadScheduler.trigger` unconditionally.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from shareline.models import OutcomeKind, TaskStatus
from shareline.upload.executor import TransferExecutor
from shareline.upload.store import TaskStore

logger = logging.getLogger(__name__)


class UploadScheduler:
    """Serializes transfers over a single asyncio worker task.

    Args:
        store: Task store to pull queued tasks from.
        executor: Executor that drives each transfer.
    """

    def __init__(self, store: TaskStore, executor: TransferExecutor) -> None:
        self._store = store
        self._executor = executor
        self._worker_active = False
        self._worker: asyncio.Task | None = None
        self._stopping = False
        self._processed: Counter[str] = Counter()

    @property
    def is_active(self) -> bool:
        return self._worker_active

    @property
    def processed(self) -> dict[str, int]:
        """Outcome counts for every transfer this scheduler has run."""
        return {kind.value: self._processed[kind.value] for kind in OutcomeKind}

    def trigger(self) -> bool:
        """Start the worker loop if it is idle and work is queued.

        Returns:
            True if a new worker was started.
        """
        if self._worker_active or self._stopping:
            return False
        if self._store.next_queued() is None:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; worker start deferred")
            return False

        self._worker_active = True
        self._worker = loop.create_task(self._run(), name="upload-worker")
        return True

    async def _run(self) -> None:
        logger.debug("Upload worker started")
        try:
            while not self._stopping:
                task = self._store.next_queued()
                if task is None:
                    break
                try:
                    outcome = await self._executor.execute(task)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Worker failed to execute task %s", task.id)
                    if task.status == TaskStatus.QUEUED:
                        # Picking it again would spin forever.
                        break
                    continue
                self._processed[outcome.kind.value] += 1
        finally:
            self._worker_active = False
            logger.debug("Upload worker stopped")

    async def wait_idle(self) -> None:
        """Wait until no worker is running, including ones retriggered meanwhile."""
        self.trigger()
        while self._worker is not None and not self._worker.done():
            worker = self._worker
            try:
                await asyncio.shield(worker)
            except asyncio.CancelledError:
                if not worker.cancelled():
                    raise

    async def stop(self) -> None:
        """Abort the in-flight transfer and stop picking new tasks.

        Tasks still ``queued`` stay queued; a later :meth:`trigger` resumes.
        """
        self._stopping = True
        try:
            active = self._store.active()
            if active is not None and active.cancel_handle is not None:
                active.cancel_handle.cancel()
            await self.wait_idle()
        finally:
            self._stopping = False
