"""Rich live progress display for the upload queue.

One bar per task, driven entirely by :class:`TaskStore` change events:

* **Bar** -- transfer percent of the task
* **Status text** -- queued / uploading / done / failed (with reason) / canceled
"""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)

from shareline.models import TaskStatus, UploadTask
from shareline.upload.store import ChangeKind, TaskStore

_STATUS_TEXT: dict[TaskStatus, str] = {
    TaskStatus.QUEUED: "[dim]Queued[/dim]",
    TaskStatus.UPLOADING: "uploading",
    TaskStatus.DONE: "[green]Done[/green]",
    TaskStatus.ERROR: "[red]Failed[/red]",
    TaskStatus.CANCELED: "[yellow]Canceled[/yellow]",
}


class QueueProgressTracker:
    """Per-task Rich progress bars mirroring the store.

    Usage::

        tracker = QueueProgressTracker(manager.store)
        with tracker:
            await manager.wait_idle()
    """

    def __init__(self, store: TaskStore, console: Console | None = None) -> None:
        self._store = store
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TextColumn("{task.fields[status]}"),
            console=console,
        )
        self._rows: dict[str, TaskID] = {}
        self._stats: dict[str, int] = {status.value: 0 for status in TaskStatus}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the display and begin following store changes."""
        for task in self._store:
            self._add_row(task)
        self._store.subscribe(self._on_change)
        self._progress.start()

    def stop(self) -> None:
        self._store.unsubscribe(self._on_change)
        self._progress.stop()

    def __enter__(self) -> QueueProgressTracker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Store events
    # ------------------------------------------------------------------

    def _on_change(self, kind: ChangeKind, task: UploadTask) -> None:
        if kind == ChangeKind.ADDED:
            self._add_row(task)
        elif kind == ChangeKind.REMOVED:
            row = self._rows.pop(task.id, None)
            if row is not None:
                self._progress.remove_task(row)
        else:
            self._update_row(task)

    def _add_row(self, task: UploadTask) -> None:
        if task.id in self._rows:
            return
        self._rows[task.id] = self._progress.add_task(
            _truncate_name(task.name),
            total=task.payload.size or None,
            status=_status_text(task),
        )
        self._update_row(task)

    def _update_row(self, task: UploadTask) -> None:
        row = self._rows.get(task.id)
        if row is None:
            return
        completed = task.payload.size * task.progress // 100
        self._progress.update(row, completed=completed, status=_status_text(task))
        if task.status == TaskStatus.UPLOADING:
            self._progress.start_task(row)
        elif task.is_terminal:
            self._stats[task.status.value] += 1

    @property
    def stats(self) -> dict[str, int]:
        """Terminal transitions observed per status."""
        return dict(self._stats)


def _status_text(task: UploadTask) -> str:
    text = _STATUS_TEXT[task.status]
    if task.status == TaskStatus.ERROR and task.error_message:
        text = f"{text} {task.error_message}"
    return text


def _truncate_name(name: str, max_len: int = 40) -> str:
    """Shorten a file name for display, keeping the extension visible."""
    if len(name) <= max_len:
        return name
    return "..." + name[-(max_len - 3) :]
