"""Shared pytest fixtures for the upload queue tests.

Provides a scriptable fake transfer endpoint, queue configuration, a task
store, and a fully wired ``UploadQueueManager`` for all test modules.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from unittest.mock import MagicMock, patch

import pytest

from shareline.config import TOKEN_ENV_VAR, QueueConfig
from shareline.models import Payload, TaskStatus, UploadReceipt
from shareline.upload.exceptions import TransferError
from shareline.upload.orchestrator import UploadQueueManager
from shareline.upload.store import TaskStore

MB = 1024 * 1024


class FakeEndpoint:
    """In-memory TransferEndpoint with per-file scripting.

    * ``hold(name)``  -- the transfer blocks after 50% until ``release(name)``
    * ``fail(name, reason)`` -- the next attempt for *name* raises TransferError
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.aborted: list[str] = []
        self.active = 0
        self.max_active = 0
        self._failures: dict[str, list[str | None]] = defaultdict(list)
        self._held: set[str] = set()
        self._started: dict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self._released: dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    def hold(self, name: str) -> None:
        self._held.add(name)

    def release(self, name: str) -> None:
        self._released[name].set()

    def fail(self, name: str, reason: str | None = "Upload failed") -> None:
        self._failures[name].append(reason)

    async def wait_started(self, name: str) -> None:
        await asyncio.wait_for(self._started[name].wait(), timeout=1)

    async def send(self, payload: Payload, on_progress) -> UploadReceipt:
        self.calls.append(payload.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            total = payload.size
            on_progress(total // 2, total)
            self._started[payload.name].set()
            if payload.name in self._held:
                try:
                    await self._released[payload.name].wait()
                except asyncio.CancelledError:
                    self.aborted.append(payload.name)
                    raise
            else:
                await asyncio.sleep(0)

            if self._failures[payload.name]:
                raise TransferError(self._failures[payload.name].pop(0))

            on_progress(total, total)
            return UploadReceipt(
                id=len(self.calls),
                filename=payload.name,
                message="File uploaded successfully",
            )
        finally:
            self.active -= 1


def make_payload(name: str, size: int = 1000) -> Payload:
    """Payload whose declared size need not match the bytes behind it."""
    return Payload(name=name, size=size, source=b"x" * min(size, 1000))


def statuses(manager: UploadQueueManager) -> dict[str, TaskStatus]:
    return {task.name: task.status for task in manager.tasks}


@pytest.fixture(autouse=True)
def no_keyring(monkeypatch):
    """Keep tests away from the developer's real keyring and token."""
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)
    with patch("shareline.config.keyring.get_password", return_value=None):
        yield


@pytest.fixture
def config() -> QueueConfig:
    return QueueConfig(max_payload_size=100 * MB, max_queue_size=10)


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def on_complete() -> MagicMock:
    return MagicMock(name="on_complete")


@pytest.fixture
def manager(config: QueueConfig, endpoint: FakeEndpoint, on_complete: MagicMock) -> UploadQueueManager:
    return UploadQueueManager(config, endpoint, on_complete=on_complete)
