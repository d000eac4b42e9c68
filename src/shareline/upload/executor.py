"""Drive one task's transfer to a terminal state.

The executor owns the ``uploading`` phase of a task: it attaches a fresh
cancellation handle, races the endpoint call against that handle, and maps
whatever happens (success, endpoint failure, user abort) onto the task's
status in the store.  Transfer errors never propagate out of
:meth:`TransferExecutor.execute`.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable

from shareline.models import TaskStatus, TransferOutcome, UploadTask
from shareline.upload.cancellation import CancellationHandle
from shareline.upload.endpoint import TransferEndpoint
from shareline.upload.exceptions import TransferError
from shareline.upload.store import DEFAULT_ERROR_MESSAGE, TaskStore

logger = logging.getLogger(__name__)

CompletionListener = Callable[[], None]


def percent_complete(bytes_sent: int, total_bytes: int | None) -> int | None:
    """Round-half-up percentage, or None when the total is unknown."""
    if not total_bytes or total_bytes <= 0:
        return None
    return int(math.floor(bytes_sent / total_bytes * 100 + 0.5))


class TransferExecutor:
    """Runs a single transfer against a :class:`TransferEndpoint`.

    Args:
        store: Task store holding the task being executed.
        endpoint: Transfer endpoint (one call per attempt).
        on_complete: Zero-argument listener invoked once per task that
            reaches ``done``.
    """

    def __init__(
        self,
        store: TaskStore,
        endpoint: TransferEndpoint,
        on_complete: CompletionListener | None = None,
    ) -> None:
        self._store = store
        self._endpoint = endpoint
        self._on_complete = on_complete

    async def execute(self, task: UploadTask) -> TransferOutcome:
        """Transfer *task*'s payload and record the terminal status.

        Returns:
            ``Success``, ``Failure(reason)`` or ``Canceled``.
        """
        handle = CancellationHandle()
        self._store.update_status(task.id, TaskStatus.UPLOADING, cancel_handle=handle)
        logger.info("Uploading %s (%d bytes, attempt %d)", task.name, task.payload.size, task.attempts)

        def _on_progress(bytes_sent: int, total_bytes: int | None) -> None:
            percent = percent_complete(bytes_sent, total_bytes)
            if percent is not None:
                self._store.update_progress(task.id, percent)

        send = asyncio.ensure_future(self._endpoint.send(task.payload, _on_progress))
        abort = asyncio.ensure_future(handle.wait())
        try:
            await asyncio.wait({send, abort}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Worker shutdown: abort the transfer and leave the task canceled.
            await self._abort(send)
            self._store.update_status(task.id, TaskStatus.CANCELED)
            logger.warning("Upload of %s interrupted by shutdown", task.name)
            raise
        finally:
            abort.cancel()

        # The endpoint's own terminal signal wins over a late cancel request.
        if not send.done():
            await self._abort(send)
            self._store.update_status(task.id, TaskStatus.CANCELED)
            logger.info("Upload of %s canceled", task.name)
            return TransferOutcome.canceled()

        if send.cancelled():
            return self._record_failure(task, "Transfer aborted by endpoint")
        try:
            receipt = send.result()
        except TransferError as exc:
            return self._record_failure(task, exc.reason)
        except Exception as exc:
            logger.exception("Unexpected error uploading %s", task.name)
            return self._record_failure(task, str(exc))

        self._store.set_receipt(task.id, receipt)
        self._store.update_status(task.id, TaskStatus.DONE)
        logger.info("Upload of %s complete", task.name)
        self._notify_complete(task)
        return TransferOutcome.success()

    async def _abort(self, send: asyncio.Future) -> None:
        send.cancel()
        # Collects CancelledError or whatever the endpoint raised while unwinding.
        await asyncio.gather(send, return_exceptions=True)

    def _record_failure(self, task: UploadTask, reason: str | None) -> TransferOutcome:
        message = reason or DEFAULT_ERROR_MESSAGE
        self._store.update_error(task.id, message)
        logger.error("Upload of %s failed: %s", task.name, message)
        return TransferOutcome.failure(message)

    def _notify_complete(self, task: UploadTask) -> None:
        if self._on_complete is None:
            return
        try:
            self._on_complete()
        except Exception:
            logger.exception("Completion listener failed after uploading %s", task.name)
