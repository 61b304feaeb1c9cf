"""
Root Typer application for the contest-fanout CLI.

Runs the partition processor from a shell against the configured store,
mostly for operators re-driving a partition by hand.

Example::

    contest-fanout process -c contest_123 -s selection_winner -p 2
    contest-fanout process -c contest_123 -s selection_winner -p 2 --dry-run --json
    contest-fanout settings
"""

from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from contest_fanout.adapters.memory import RecordingWorker
from contest_fanout.core.errors import ConfigError, StoreQueryError, ValidationError
from contest_fanout.core.logging import configure_logging
from contest_fanout.core.models import PartitionQuery, PartitionStatus
from contest_fanout.core.settings import FanoutSettings, load_settings
from contest_fanout.handlers.partition import build_processor

EXIT_SCAN_FAILED = 1
EXIT_PARTIAL = 2
EXIT_INVALID_INPUT = 3

app = typer.Typer(
    name="contest-fanout",
    help="contest-fanout: scan a contest partition and dispatch its winners in batches.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("contest-fanout")
        except PackageNotFoundError:
            from contest_fanout import __version__ as v
        typer.echo(f"contest-fanout {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """contest-fanout CLI: process partitions and inspect settings."""


def _load_or_exit(overrides: dict[str, object]) -> FanoutSettings:
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        err_console.print(f"[bold red]Invalid configuration[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_INVALID_INPUT)


@app.command("process")
def process(
    contest_id: str = typer.Option(..., "--contest-id", "-c", help="Contest id (store partition key)"),
    selection_id: str = typer.Option(..., "--selection-id", "-s", help="Winning selection id"),
    partition_id: str = typer.Option(..., "--partition-id", "-p", help="Partition id"),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Records per batch"),  # noqa: UP007
    max_attempts: int | None = typer.Option(None, "--max-attempts", min=1, help="Dispatch attempts per batch"),  # noqa: UP007
    dry_run: bool = typer.Option(False, "--dry-run", help="Scan the store but do not invoke the worker"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    log_level: str | None = typer.Option(None, "--log-level", help="Override FANOUT_LOG_LEVEL"),  # noqa: UP007
) -> None:
    """Process one partition and print its result.

    Exit codes: 0 complete, 1 store query failed, 2 partial completion,
    3 invalid query or configuration.
    """
    overrides: dict[str, object] = {}
    if batch_size is not None:
        overrides["max_batch_size"] = batch_size
    if max_attempts is not None:
        overrides["max_attempts"] = max_attempts
    if log_level is not None:
        overrides["log_level"] = log_level
    settings = _load_or_exit(overrides)
    configure_logging(level=settings.log_level, json_format=False, service=settings.service_name)

    try:
        query = PartitionQuery(contest_id, selection_id, partition_id)
    except ValidationError as e:
        err_console.print(f"[bold red]Invalid query[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_INVALID_INPUT)

    worker = RecordingWorker() if dry_run else None
    processor = build_processor(settings, worker=worker)

    try:
        result = asyncio.run(processor.process(query))
    except StoreQueryError as e:
        err_console.print(f"[bold red]Scan failed[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_SCAN_FAILED)

    response = result.to_response()
    if as_json:
        console.print_json(json.dumps(response))
    else:
        table = Table(title=f"{contest_id} / {selection_id}#{partition_id}")
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("overallStatus", response["overallStatus"])
        table.add_row("batchesDispatched", str(response["batchesDispatched"]))
        for failed in response["failedBatches"]:
            table.add_row(f"failed batch {failed['batchNumber']}", str(failed["error"]))
        if dry_run:
            table.add_row("dryRun", "worker not invoked")
        console.print(table)

    if result.overall_status is PartitionStatus.PARTIAL_COMPLETION:
        raise typer.Exit(code=EXIT_PARTIAL)


@app.command("settings")
def show_settings(
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show effective settings (defaults + FANOUT_ environment)."""
    data = _load_or_exit({}).model_dump(mode="json")
    if as_json:
        console.print_json(json.dumps(data))
        return
    table = Table(title="contest-fanout settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
