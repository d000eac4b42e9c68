"""CLI entry point for the Shareline upload queue.

Provides commands:
  - upload: Queue files and upload them one at a time with live progress
  - config show: Display the effective queue configuration
  - config set-token: Store the endpoint API token in the system keyring
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shareline.config import QueueConfig, load_queue_config

if TYPE_CHECKING:
    from shareline.models import AdmissionResult
    from shareline.upload.orchestrator import UploadQueueManager

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Shareline - Queue files and upload them to your Shareline server",
    rich_markup_mode="rich",
)
console = Console()

# Config command group
config_app = typer.Typer(help="Manage configuration (API token, limits)")
app.add_typer(config_app, name="config")


def _load_config(config_path: Path | None) -> QueueConfig:
    try:
        return load_queue_config(config_path)
    except (ValueError, TypeError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)


def admission_messages(result: AdmissionResult, config: QueueConfig) -> list[str]:
    """User-facing notes for a partial admission (empty when all were admitted)."""
    messages = []
    if result.dropped_for_capacity:
        allowed = result.admitted_count + result.dropped_for_size
        messages.append(
            f"Queue limit is {config.max_queue_size} files. Added the first {allowed}."
        )
    if result.dropped_for_size:
        messages.append(
            f"Some files exceed {config.max_payload_size_mb}MB and were skipped."
        )
    return messages


async def run_retry_rounds(manager: UploadQueueManager, rounds: int) -> int:
    """Requeue failed tasks up to *rounds* times, waiting for each round.

    Stops early when nothing failed or once a shutdown has been requested.

    Returns:
        Number of rounds actually run.
    """
    completed = 0
    for round_number in range(1, rounds + 1):
        if manager.shutdown_requested:
            logger.info("Shutdown requested; skipping remaining retry rounds")
            break
        retried = manager.retry_all_failed()
        if not retried:
            break
        logger.info("Retry round %d: %d tasks", round_number, retried)
        await manager.wait_idle()
        completed += 1
    return completed


def _format_size(size: int) -> str:
    size_kb = size / 1024
    return f"{size_kb:.1f} KB" if size_kb < 1024 else f"{size_kb / 1024:.1f} MB"


def _print_summary(manager: UploadQueueManager) -> None:
    table = Table(title="Upload Queue")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail", overflow="fold")

    styles = {"done": "green", "error": "red", "canceled": "yellow"}
    for task in manager.tasks:
        style = styles.get(task.status.value, "dim")
        detail = task.error_message or (task.receipt.message if task.receipt else "") or ""
        table.add_row(
            task.name,
            _format_size(task.payload.size),
            f"[{style}]{task.status.value}[/{style}]",
            str(task.attempts),
            detail,
        )

    counts = manager.summary
    console.print(
        Panel(
            table,
            title="Upload Complete",
            subtitle=(
                f"{counts['done']} done, {counts['error']} failed, "
                f"{counts['canceled']} canceled, {counts['queued']} queued"
            ),
        )
    )


@app.command()
def upload(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files to upload (directories are skipped)"),
    ],
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Base URL of the Shareline API"),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to upload_queue.json"),
    ] = None,
    max_size_mb: Annotated[
        int | None,
        typer.Option("--max-size-mb", help="Largest accepted file, in MB"),
    ] = None,
    max_queue: Annotated[
        int | None,
        typer.Option("--max-queue", help="Maximum number of files in the queue"),
    ] = None,
    retry_failed: Annotated[
        int,
        typer.Option("--retry-failed", "-r", help="Retry rounds for failed uploads"),
    ] = 0,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
    log_dir: Annotated[
        Path | None,
        typer.Option("--log-dir", help="Also write JSON-lines logs to this directory"),
    ] = None,
) -> None:
    """Queue files and upload them one at a time with progress tracking.

    The API token (if any) is read from the system keyring
    (service: shareline-upload) or SHARELINE_API_TOKEN.
    """
    from shareline.logging_config import configure_console_logging, configure_file_logging

    configure_console_logging(console, verbose=verbose)
    if log_dir is not None:
        configure_file_logging(str(log_dir))

    config = _load_config(config_path)
    overrides: dict[str, object] = {}
    if url is not None:
        overrides["endpoint_url"] = url
    if max_size_mb is not None:
        overrides["max_payload_size"] = max_size_mb * 1024 * 1024
    if max_queue is not None:
        overrides["max_queue_size"] = max_queue
    try:
        config = dataclasses.replace(config, **overrides)
    except ValueError as e:
        console.print(f"[red]Invalid option:[/red] {e}")
        raise typer.Exit(code=1)

    # Import upload modules here to keep CLI startup fast for config commands
    import asyncio

    from shareline.models import Payload, TaskStatus
    from shareline.upload.http_endpoint import HttpTransferEndpoint
    from shareline.upload.orchestrator import UploadQueueManager
    from shareline.upload.progress import QueueProgressTracker

    payloads = []
    for path in paths:
        if not path.is_file():
            console.print(f"[yellow]Skipping[/yellow] {path} (not a file)")
            continue
        payloads.append(Payload.from_path(path))

    if not payloads:
        console.print("[red]Error:[/red] No files to upload.")
        raise typer.Exit(code=1)

    async def _run_upload() -> UploadQueueManager:
        async with HttpTransferEndpoint(config) as endpoint:
            manager = UploadQueueManager(config, endpoint)
            manager.setup_signal_handlers()
            with QueueProgressTracker(manager.store, console=console):
                result = manager.admit(payloads)
                for message in admission_messages(result, config):
                    console.print(f"[yellow]{message}[/yellow]")
                await manager.wait_idle()

                await run_retry_rounds(manager, retry_failed)
                await manager.wait_shutdown()
            return manager

    console.print(
        Panel(
            f"Uploading [bold]{len(payloads)}[/bold] files to "
            f"[bold]{config.upload_url}[/bold]\n"
            f"Limits: {config.max_queue_size} files | "
            f"{config.max_payload_size_mb}MB per file",
            title="Upload Queue",
        )
    )

    manager = asyncio.run(_run_upload())
    _print_summary(manager)

    if manager.shutdown_requested:
        console.print("[yellow]Upload interrupted; unfinished files were not uploaded.[/yellow]")
        raise typer.Exit(code=1)
    if manager.store.count(TaskStatus.ERROR):
        raise typer.Exit(code=1)


@config_app.command("show")
def config_show(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to upload_queue.json"),
    ] = None,
) -> None:
    """Display the effective upload queue configuration."""
    config = _load_config(config_path)

    table = Table(title="Upload Queue Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Upload URL", config.upload_url)
    table.add_row("Form field", config.form_field)
    table.add_row("Max file size", f"{config.max_payload_size_mb}MB ({config.max_payload_size} bytes)")
    table.add_row("Max queue size", str(config.max_queue_size))
    table.add_row("Timeout", f"{config.timeout_seconds}s")
    if config.api_token:
        masked = config.api_token[:4] + "..." if len(config.api_token) > 8 else "****"
        table.add_row("API token", f"[green]{masked}[/green]")
    else:
        table.add_row("API token", "[dim]not set[/dim]")

    console.print(table)


@config_app.command("set-token")
def config_set_token(
    token: Annotated[str, typer.Argument(help="API token for the Shareline server")],
) -> None:
    """Store the API token in the system keyring."""
    from shareline.config import SERVICE_NAME, set_api_token

    set_api_token(token)
    console.print(f"[green]Token saved[/green] to keyring service '{SERVICE_NAME}'.")
