"""Tests for UploadQueueManager shutdown requests and retry rounds."""

from __future__ import annotations

from conftest import make_payload, statuses
from shareline.cli import run_retry_rounds
from shareline.models import TaskStatus


class TestShutdownRequest:
    async def test_request_aborts_active_and_is_remembered(self, manager, endpoint):
        endpoint.fail("a")
        endpoint.hold("b")
        manager.admit([make_payload(n) for n in ("a", "b", "c")])
        await endpoint.wait_started("b")

        manager.request_shutdown()
        await manager.wait_idle()
        await manager.wait_shutdown()

        assert manager.shutdown_requested
        assert statuses(manager) == {
            "a": TaskStatus.ERROR,
            "b": TaskStatus.CANCELED,
            "c": TaskStatus.QUEUED,
        }

    async def test_retry_rounds_skipped_after_shutdown(self, manager, endpoint):
        """Failed tasks are not requeued once a shutdown was requested."""
        endpoint.fail("a")
        endpoint.hold("b")
        manager.admit([make_payload("a"), make_payload("b")])
        await endpoint.wait_started("b")
        manager.request_shutdown()
        await manager.wait_idle()

        assert await run_retry_rounds(manager, 3) == 0
        await manager.wait_shutdown()

        assert statuses(manager) == {"a": TaskStatus.ERROR, "b": TaskStatus.CANCELED}
        assert endpoint.calls == ["a", "b"]

    async def test_repeated_request_starts_one_shutdown(self, manager, endpoint):
        endpoint.hold("a")
        manager.admit([make_payload("a")])
        await endpoint.wait_started("a")

        manager.request_shutdown()
        first = manager._shutdown_task
        manager.request_shutdown()
        assert manager._shutdown_task is first
        await manager.wait_shutdown()

    async def test_context_exit_awaits_pending_shutdown(self, manager, endpoint):
        endpoint.hold("a")
        async with manager:
            manager.admit([make_payload("a")])
            await endpoint.wait_started("a")
            manager.request_shutdown()

        assert manager._shutdown_task.done()
        assert manager._shutdown_task.exception() is None
        assert statuses(manager) == {"a": TaskStatus.CANCELED}

    async def test_no_request_means_no_task(self, manager):
        async with manager:
            manager.admit([make_payload("a")])
            await manager.wait_idle()
        assert not manager.shutdown_requested
        assert manager._shutdown_task is None


class TestRetryRounds:
    async def test_rounds_until_nothing_fails(self, manager, endpoint):
        endpoint.fail("a")
        endpoint.fail("a")
        manager.admit([make_payload("a")])
        await manager.wait_idle()

        assert await run_retry_rounds(manager, 5) == 2
        assert statuses(manager) == {"a": TaskStatus.DONE}

    async def test_rounds_limited(self, manager, endpoint):
        for _ in range(3):
            endpoint.fail("a")
        manager.admit([make_payload("a")])
        await manager.wait_idle()

        assert await run_retry_rounds(manager, 1) == 1
        assert statuses(manager) == {"a": TaskStatus.ERROR}
