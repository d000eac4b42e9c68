"""Per-task cancellation handle for an in-flight transfer."""

from __future__ import annotations

import asyncio


class CancellationHandle:
    """Cooperative abort flag bound 1:1 to an uploading task.

    The executor races :meth:`wait` against the endpoint call and aborts the
    transfer when the handle fires first.  Calling :meth:`cancel` after the
    transfer has finished has no effect on the task.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request abort of the associated transfer."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationHandle(cancelled={self.cancelled})"
