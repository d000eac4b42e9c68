"""Upload queue manager.

Composes the queue primitives (store, admission controller, executor,
scheduler, recovery controller) into the object a UI or CLI talks to:

* ``admit`` validates and enqueues payloads, then wakes the worker
* ``retry`` / ``cancel`` / ``clear_finished`` are available at any time,
  including while a transfer is in flight
* ``wait_idle`` / ``shutdown`` let async callers wait for or stop the worker
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable

from shareline.config import QueueConfig
from shareline.models import AdmissionResult, Payload, TaskStatus, UploadTask
from shareline.upload.admission import AdmissionController
from shareline.upload.endpoint import TransferEndpoint
from shareline.upload.executor import CompletionListener, TransferExecutor
from shareline.upload.recovery import RecoveryController
from shareline.upload.scheduler import UploadScheduler
from shareline.upload.store import TaskStore

logger = logging.getLogger(__name__)


class UploadQueueManager:
    """Session-scoped upload queue.

    Usage::

        async with HttpTransferEndpoint(config) as endpoint:
            manager = UploadQueueManager(config, endpoint, on_complete=refresh)
            result = manager.admit(payloads)
            await manager.wait_idle()

    Args:
        config: Admission limits.
        endpoint: Transfer endpoint used for every upload.
        on_complete: Zero-argument listener called once per finished upload.
        store: Optional pre-built store (a new one is created otherwise).
    """

    def __init__(
        self,
        config: QueueConfig,
        endpoint: TransferEndpoint,
        on_complete: CompletionListener | None = None,
        store: TaskStore | None = None,
    ) -> None:
        self._config = config
        self.store = store if store is not None else TaskStore()
        self.admission = AdmissionController(
            self.store, config.max_payload_size, config.max_queue_size
        )
        self.executor = TransferExecutor(self.store, endpoint, on_complete)
        self.scheduler = UploadScheduler(self.store, self.executor)
        self.recovery = RecoveryController(self.store, self.scheduler)
        self._signal_count = 0
        self._shutdown_requested = False
        self._shutdown_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def admit(self, payloads: Iterable[Payload]) -> AdmissionResult:
        """Admit payloads and (re)start the worker if anything was queued."""
        result = self.admission.admit(payloads)
        if result.admitted:
            self.scheduler.trigger()
        return result

    def retry(self, task_id: str) -> bool:
        return self.recovery.retry(task_id)

    def retry_all_failed(self) -> int:
        return self.recovery.retry_all_failed()

    def cancel(self, task_id: str) -> bool:
        return self.recovery.cancel(task_id)

    def clear_finished(self) -> list[UploadTask]:
        return self.recovery.clear_finished()

    def get(self, task_id: str) -> UploadTask:
        return self.store.get(task_id)

    @property
    def tasks(self) -> list[UploadTask]:
        """All tasks in admission order."""
        return list(self.store)

    @property
    def summary(self) -> dict[str, int]:
        """Task counts per status plus the total."""
        counts = {status.value: self.store.count(status) for status in TaskStatus}
        counts["total"] = len(self.store)
        return counts

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait until every queued task has reached a terminal status."""
        await self.scheduler.wait_idle()

    async def shutdown(self) -> None:
        """Abort the in-flight upload and stop the worker; queued tasks stay queued."""
        await self.scheduler.stop()

    @property
    def shutdown_requested(self) -> bool:
        """True once :meth:`request_shutdown` has been called (e.g. by SIGINT)."""
        return self._shutdown_requested

    def request_shutdown(self) -> None:
        """Schedule :meth:`shutdown` on the running loop and remember the request.

        Callers that run follow-up work (such as retry rounds) should check
        :attr:`shutdown_requested` and skip it.
        """
        self._shutdown_requested = True
        if self._shutdown_task is None or self._shutdown_task.done():
            self._shutdown_task = asyncio.get_running_loop().create_task(self.shutdown())

    async def wait_shutdown(self) -> None:
        """Wait for a shutdown started by :meth:`request_shutdown`, if any."""
        if self._shutdown_task is not None:
            await self._shutdown_task

    async def __aenter__(self) -> UploadQueueManager:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.wait_shutdown()
        await self.shutdown()

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def setup_signal_handlers(self) -> None:
        """Register SIGINT/SIGTERM handlers on the running loop.

        First signal aborts the current upload and stops the worker.
        Second signal forces immediate exit.
        """
        loop = asyncio.get_running_loop()
        self._signal_count = 0

        def _handler() -> None:
            self._signal_count += 1
            if self._signal_count == 1:
                logger.warning("Shutdown requested, aborting current upload...")
                self.request_shutdown()
            else:
                logger.warning("Forced shutdown. Exiting immediately.")
                raise SystemExit(1)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handler)
            except (NotImplementedError, RuntimeError, ValueError):
                # add_signal_handler is unavailable on some platforms / threads
                logger.debug("Could not set handler for %s", sig)
