"""Transfer endpoint protocol consumed by the executor."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from shareline.models import Payload, UploadReceipt

ProgressCallback = Callable[[int, "int | None"], None]
"""Called with ``(bytes_sent, total_bytes)``; ``total_bytes`` may be None or 0."""


@runtime_checkable
class TransferEndpoint(Protocol):
    """Accepts one payload transfer at a time.

    Implementations report progress through *on_progress*, return an
    optional receipt on success and raise
    :class:`~shareline.upload.exceptions.TransferError` on failure.  Abort is
    requested by cancelling the coroutine; implementations must release the
    underlying connection when that happens.
    """

    async def send(
        self, payload: Payload, on_progress: ProgressCallback
    ) -> UploadReceipt | None: ...
