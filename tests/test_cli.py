"""Tests for the typer CLI: upload command and config subcommands."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import FakeEndpoint, make_payload
from shareline.cli import admission_messages, app
from shareline.config import QueueConfig
from shareline.models import AdmissionRejection, AdmissionResult, RejectionReason
from shareline.upload.orchestrator import UploadQueueManager

runner = CliRunner()


class _RecordingManager(UploadQueueManager):
    instances: list[_RecordingManager] = []

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.instances.append(self)


class _ContextEndpoint(FakeEndpoint):
    """FakeEndpoint shaped like HttpTransferEndpoint (config arg, async with)."""

    instances: list[_ContextEndpoint] = []
    failures: dict[str, str] = {}
    interrupt_on: str | None = None

    def __init__(self, config: QueueConfig) -> None:
        super().__init__()
        self.config = config
        for name, reason in self.failures.items():
            self.fail(name, reason)
        self.instances.append(self)

    async def send(self, payload, on_progress):
        if payload.name == self.interrupt_on:
            # Same path as the SIGINT handler, without signalling the test process.
            self.hold(payload.name)
            manager = _RecordingManager.instances[-1]
            asyncio.get_running_loop().call_soon(manager.request_shutdown)
        return await super().send(payload, on_progress)

    async def __aenter__(self) -> _ContextEndpoint:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


@pytest.fixture
def fake_http():
    _ContextEndpoint.instances = []
    _ContextEndpoint.failures = {}
    _ContextEndpoint.interrupt_on = None
    _RecordingManager.instances = []
    with patch("shareline.upload.http_endpoint.HttpTransferEndpoint", _ContextEndpoint), patch(
        "shareline.upload.orchestrator.UploadQueueManager", _RecordingManager
    ):
        yield _ContextEndpoint


@pytest.fixture
def files(tmp_path):
    paths = []
    for name in ("a.txt", "b.txt", "c.txt"):
        path = tmp_path / name
        path.write_bytes(b"data-" + name.encode())
        paths.append(path)
    return paths


# ======================================================================
# admission_messages
# ======================================================================


class TestAdmissionMessages:
    def test_capacity_message(self):
        result = AdmissionResult(
            admitted=[object()] * 10,
            dropped_for_capacity=2,
        )
        assert admission_messages(result, QueueConfig()) == [
            "Queue limit is 10 files. Added the first 10."
        ]

    def test_size_message(self):
        payload = make_payload("big.iso", size=150 * 1024 * 1024)
        result = AdmissionResult(
            dropped_for_size=1,
            rejections=[AdmissionRejection(payload, RejectionReason.SIZE)],
        )
        assert admission_messages(result, QueueConfig()) == [
            "Some files exceed 100MB and were skipped."
        ]

    def test_first_k_counts_oversized_among_considered(self):
        result = AdmissionResult(admitted=[object()] * 8, dropped_for_capacity=3, dropped_for_size=2)
        messages = admission_messages(result, QueueConfig())
        assert messages[0] == "Queue limit is 10 files. Added the first 10."
        assert len(messages) == 2

    def test_nothing_rejected(self):
        assert admission_messages(AdmissionResult(), QueueConfig()) == []


# ======================================================================
# upload command
# ======================================================================


class TestUploadCommand:
    def test_uploads_all_files(self, fake_http, files):
        result = runner.invoke(app, ["upload", *map(str, files)])

        assert result.exit_code == 0, result.output
        (endpoint,) = fake_http.instances
        assert endpoint.calls == ["a.txt", "b.txt", "c.txt"]
        assert "3 done" in result.output

    def test_queue_limit_message(self, fake_http, files):
        result = runner.invoke(app, ["upload", "--max-queue", "2", *map(str, files)])

        assert result.exit_code == 0, result.output
        assert "Queue limit is 2 files. Added the first 2." in result.output
        assert fake_http.instances[0].calls == ["a.txt", "b.txt"]

    def test_failure_sets_exit_code(self, fake_http, files):
        fake_http.failures = {"b.txt": "500 Internal Error"}
        result = runner.invoke(app, ["upload", *map(str, files)])

        assert result.exit_code == 1
        assert "1 failed" in result.output
        assert "500 Internal Error" in result.output

    def test_retry_rounds_recover_failures(self, fake_http, files):
        fake_http.failures = {"b.txt": "timeout"}
        result = runner.invoke(app, ["upload", "--retry-failed", "1", *map(str, files)])

        assert result.exit_code == 0, result.output
        assert fake_http.instances[0].calls == ["a.txt", "b.txt", "c.txt", "b.txt"]

    def test_interrupt_skips_retries_and_exits_1(self, fake_http, files):
        fake_http.failures = {"a.txt": "500 Internal Error"}
        fake_http.interrupt_on = "b.txt"
        result = runner.invoke(app, ["upload", "--retry-failed", "2", *map(str, files)])

        assert result.exit_code == 1
        assert "Upload interrupted" in result.output
        assert fake_http.instances[0].calls == ["a.txt", "b.txt"]
        (manager,) = _RecordingManager.instances
        assert {t.name: t.status.value for t in manager.tasks} == {
            "a.txt": "error",
            "b.txt": "canceled",
            "c.txt": "queued",
        }

    def test_url_override_reaches_endpoint(self, fake_http, files):
        result = runner.invoke(app, ["upload", "-u", "https://share.example/api", str(files[0])])
        assert result.exit_code == 0, result.output
        assert fake_http.instances[0].config.upload_url == "https://share.example/api/files/upload"

    def test_missing_files_exit_1(self, fake_http, tmp_path):
        result = runner.invoke(app, ["upload", str(tmp_path / "nope.txt"), str(tmp_path)])

        assert result.exit_code == 1
        assert "No files to upload" in result.output
        assert fake_http.instances == []

    def test_invalid_override_exit_1(self, fake_http, files):
        result = runner.invoke(app, ["upload", "--max-queue", "0", str(files[0])])
        assert result.exit_code == 1
        assert "Invalid option" in result.output


# ======================================================================
# config subcommands
# ======================================================================


class TestConfigCommands:
    def test_show_defaults(self, tmp_path):
        result = runner.invoke(app, ["config", "show", "-c", str(tmp_path / "none.json")])

        assert result.exit_code == 0, result.output
        assert "http://localhost:8080/api/files/upload" in result.output
        assert "not set" in result.output

    def test_show_masks_token(self, tmp_path):
        with patch("shareline.config.keyring.get_password", return_value="abcdefghijkl"):
            result = runner.invoke(app, ["config", "show", "-c", str(tmp_path / "none.json")])

        assert "abcd..." in result.output
        assert "abcdefghijkl" not in result.output

    def test_show_invalid_config_exit_1(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"max_queue_size": 0}')
        result = runner.invoke(app, ["config", "show", "-c", str(path)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_set_token(self):
        with patch("shareline.config.keyring.set_password") as set_password:
            result = runner.invoke(app, ["config", "set-token", "tok-123"])

        assert result.exit_code == 0, result.output
        set_password.assert_called_once_with("shareline-upload", "api_token", "tok-123")
