"""Typer CLI entrypoint for Circular Sync."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigError, SyncConfig, load_config
from .engine import SQLiteCircularStore
from .infra import SQLiteManager, StoreError
from .logging_conf import ERROR_LOG, SYNC_LOG, configure_logging, tail_log
from .orchestrator import CycleReport, Orchestrator
from .scheduler import APSchedulerAdapter, initial_state

app = typer.Typer(
    help="Synchronise school portal circulars into a local database.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()

CREDENTIALS_HELP = (
    "JSON/YAML file holding ConnectionString, used when "
    "CIRCULARS_DB_CONNECTION_STRING is not set."
)


@dataclass
class AppState:
    config: SyncConfig
    orchestrator: Orchestrator
    scheduler: APSchedulerAdapter
    store: SQLiteCircularStore


def build_state(credentials: Optional[Path], verbose: bool) -> AppState:
    config = load_config(credentials)
    configure_logging(verbose=verbose, log_dir=config.log_dir)
    manager = SQLiteManager()
    orchestrator = Orchestrator.from_config(config, manager)
    return AppState(
        config=config,
        orchestrator=orchestrator,
        scheduler=APSchedulerAdapter(retry_wait=config.cycle_wait),
        store=SQLiteCircularStore(config.database_path, manager),
    )


def _get_state(ctx: typer.Context, credentials: Optional[Path]) -> AppState:
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    try:
        return build_state(credentials, verbose)
    except ConfigError as exc:
        console.print(f"ERROR: {exc}", style="red")
        raise typer.Exit(code=1) from exc


def _render_report(report: CycleReport) -> Table:
    table = Table(title="Cycle result", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Parsed", str(report.parsed))
    if report.sync is not None:
        table.add_row("Upserted", str(report.sync.upserted))
        table.add_row("Inserted if absent", str(report.sync.inserted_only))
        table.add_row("Attachments", str(report.sync.attachments))
    if report.purge is not None:
        table.add_row("Removed circulars", str(report.purge.circulars))
        table.add_row("Removed attachments", str(report.purge.attachments))
    if report.error:
        table.add_row("Failed phase", report.failed_phase or "-", style="red")
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = {"verbose": verbose}


@app.command("run", help="Run sync cycles forever, aligned to the configured period.")
def run(
    ctx: typer.Context,
    credentials: Optional[Path] = typer.Argument(None, help=CREDENTIALS_HELP),
) -> None:
    state = _get_state(ctx, credentials)
    console.print(
        f"Cycle every {state.config.cycle_wait}, cleanup every {state.config.cleanup_period}",
        style="dim",
    )
    try:
        state.scheduler.run_forever(state.orchestrator.run_cycle, initial_state())
    except (KeyboardInterrupt, SystemExit):
        state.scheduler.shutdown()
    finally:
        state.orchestrator.close()


@app.command("once", help="Run a single cycle now.")
def once(
    ctx: typer.Context,
    credentials: Optional[Path] = typer.Argument(None, help=CREDENTIALS_HELP),
    cleanup: bool = typer.Option(
        False, "--cleanup", help="Also remove circulars missing from the feed."
    ),
) -> None:
    state = _get_state(ctx, credentials)
    try:
        report = state.orchestrator.run_once(cleanup=cleanup)
    finally:
        state.orchestrator.close()
    console.print(_render_report(report))
    if not report.ok:
        console.print(f"ERROR: {report.error}", style="red")
        raise typer.Exit(code=1)


@app.command("show", help="List the most recent stored circulars.")
def show(
    ctx: typer.Context,
    credentials: Optional[Path] = typer.Argument(None, help=CREDENTIALS_HELP),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of circulars to list."),
) -> None:
    state = _get_state(ctx, credentials)
    try:
        rows = state.store.recent(limit)
    except StoreError as exc:
        console.print(f"ERROR: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        state.orchestrator.close()
    if not rows:
        console.print("No circulars stored yet.", style="yellow")
        raise typer.Exit(code=0)
    table = Table(title="Circulars", box=box.SIMPLE_HEAD)
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Category")
    table.add_column("Published")
    table.add_column("Valid until")
    for row in rows:
        table.add_row(str(row["id"]), row["titolo"], row["categoria"], row["data"], row["valida_fino"])
    console.print(table)


@app.command("init-db", help="Create the database schema.")
def init_db(
    ctx: typer.Context,
    credentials: Optional[Path] = typer.Argument(None, help=CREDENTIALS_HELP),
) -> None:
    state = _get_state(ctx, credentials)
    try:
        state.store.ensure_schema()
    except StoreError as exc:
        console.print(f"ERROR: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        state.orchestrator.close()
    console.print(f"Schema ready at {state.config.database_path}", style="green")


@app.command("logs", help="Print the tail of the sync log.")
def logs(
    ctx: typer.Context,
    credentials: Optional[Path] = typer.Argument(None, help=CREDENTIALS_HELP),
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines."),
    errors: bool = typer.Option(False, "--errors", help="Show error.log instead."),
) -> None:
    state = _get_state(ctx, credentials)
    state.orchestrator.close()
    path = state.config.log_dir / (ERROR_LOG if errors else SYNC_LOG)
    content = tail_log(path, lines)
    if not content:
        console.print(f"{path} is empty.", style="dim")
        return
    for line in content:
        console.print(line.rstrip("\n"), markup=False, highlight=False)


__all__ = ["AppState", "app", "build_state"]
