"""Migrate a local product catalog into a remote Odoo catalog.

This module wires the configuration, the remote client, the local catalog
and the persisted session into a ``MigrationEngine``, and exposes one run
function per command-line action.
"""

import signal
from typing import Any, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.prompt import Confirm
from rich.table import Table

from .catalog import load_products
from .engine import MigrationEngine
from .enums import MigrationPhase, TaskStatus
from .lib import conf_lib, preflight
from .lib.internal.exceptions import MigrationError
from .lib.internal.ui import _show_error_panel, _show_warning_panel
from .lib.state_store import StateStore
from .logging_config import log
from .models import MigrationState


def _build_engine(
    config: str,
    filename: Optional[str] = None,
    separator: str = ";",
    encoding: str = "utf8",
) -> MigrationEngine:
    settings = conf_lib.get_engine_settings(config)
    client = conf_lib.get_client_from_config(config)
    products = load_products(filename, separator, encoding) if filename else []
    return MigrationEngine(client, products, StateStore(settings.state_file), settings)


def _open_engine(config: str, **kwargs: Any) -> Optional[MigrationEngine]:
    """Builds the engine, reporting setup failures instead of raising."""
    try:
        return _build_engine(config, **kwargs)
    except (OSError, KeyError, ValueError, MigrationError) as e:
        _show_error_panel("Setup Error", f"Could not initialize the migration: {e}")
        return None


def _print_conflicts(state: MigrationState) -> None:
    table = Table(title="Unit of Measure Conflicts")
    table.add_column("Local unit")
    table.add_column("Remote unit id")
    for conflict in state.uom_conflicts:
        resolved = conflict.resolved_odoo_id
        table.add_row(conflict.local_uom, str(resolved) if resolved is not None else "-")
    Console().print(table)


def _print_plan_summary(state: MigrationState) -> None:
    counts: dict[str, int] = {}
    for task in state.tasks:
        counts[task.type.value] = counts.get(task.type.value, 0) + 1
    summary = ", ".join(f"{n} {kind}" for kind, n in counts.items()) or "no tasks"
    Console().print(f"[bold green]Plan ready:[/bold green] {summary}.")


def run_check(config: str) -> bool:
    """Runs the pre-flight checks against the configured server."""
    engine = _open_engine(config)
    if engine is None:
        return False
    return preflight.run_preflight_checks(engine.client)


def run_analysis(
    config: str,
    filename: str,
    separator: str = ";",
    encoding: str = "utf8",
    skip_check: bool = False,
) -> Optional[MigrationPhase]:
    """Analyzes the local catalog against the remote one and builds the plan."""
    engine = _open_engine(config, filename=filename, separator=separator, encoding=encoding)
    if engine is None:
        return None
    if not skip_check and not preflight.run_preflight_checks(engine.client):
        return None

    phase = engine.run_analysis()
    if phase == MigrationPhase.RESOLVING:
        _print_conflicts(engine.state)
        _show_warning_panel(
            "Action Required",
            "Map each unit with [bold cyan]resolve[/bold cyan] or "
            "[bold cyan]create-unit[/bold cyan], then run "
            "[bold cyan]confirm[/bold cyan].",
        )
    elif engine.state.has_plan:
        _print_plan_summary(engine.state)
    return phase


def run_resolve(config: str, uom: str, unit_id: int) -> bool:
    """Maps a conflicting local unit to an existing remote unit."""
    engine = _open_engine(config)
    if engine is None:
        return False
    try:
        return engine.resolve_conflict(uom, unit_id)
    except ValueError as e:
        _show_error_panel("Unknown Unit", str(e))
        return False


def run_create_unit(config: str, uom: str) -> Optional[int]:
    """Creates a conflicting local unit remotely."""
    engine = _open_engine(config)
    if engine is None:
        return None
    try:
        return engine.create_new_unit(uom)
    except ValueError as e:
        _show_error_panel("Unknown Unit", str(e))
    except MigrationError as e:
        _show_error_panel("Unit Creation Failed", str(e))
    return None


def run_confirm(
    config: str, filename: str, separator: str = ";", encoding: str = "utf8"
) -> bool:
    """Confirms the unit resolutions and builds the plan."""
    engine = _open_engine(config, filename=filename, separator=separator, encoding=encoding)
    if engine is None:
        return False
    if not engine.finish_resolution():
        _print_conflicts(engine.state)
        return False
    _print_plan_summary(engine.state)
    return True


def run_migration(config: str, skip_check: bool = False) -> Optional[MigrationPhase]:
    """Starts or resumes the migration and drives it until paused or done.

    Ctrl+C requests a pause; the task in flight is allowed to finish.
    """
    engine = _open_engine(config)
    if engine is None:
        return None
    if not skip_check and not preflight.run_preflight_checks(engine.client):
        return None
    if not engine.start_migration():
        _show_error_panel(
            "Nothing to Run",
            f"The session is in phase {engine.state.phase.value}. "
            "Run [bold cyan]analyze[/bold cyan] first.",
        )
        return engine.state.phase

    def request_pause(signum: int, frame: Any) -> None:
        log.warning("Pause requested, waiting for the current task to finish...")
        engine.pause_migration()

    previous_handler = signal.signal(signal.SIGINT, request_pause)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}", justify="right"),
        BarColumn(bar_width=None),
        "[progress.percentage]{task.percentage:>3.0f}%",
        TextColumn("•"),
        TextColumn("[green]{task.completed} of {task.total} tasks"),
        TextColumn("•"),
        TimeElapsedColumn(),
    )
    try:
        with progress:
            bar = progress.add_task(
                "[cyan]Migrating...",
                total=len(engine.state.tasks),
                completed=engine.state.current_task_index,
            )

            def on_progress(state: MigrationState) -> None:
                progress.update(bar, completed=state.current_task_index)

            phase = engine.run(on_progress=on_progress)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    failed = engine.state.failed_tasks()
    if failed:
        _show_error_panel(
            "Migration Paused",
            "\n".join(f"  - {t.name}: {t.error}" for t in failed)
            + "\n\nFix the cause, then run [bold cyan]run[/bold cyan] to resume.",
        )
    elif phase == MigrationPhase.DONE:
        log.info("--- Migration Finished Successfully ---")
    return phase


def run_pause(config: str) -> bool:
    """Marks a session left in MIGRATING (e.g. after a crash) as paused."""
    engine = _open_engine(config)
    if engine is None:
        return False
    if not engine.pause_migration():
        log.warning(f"Session is not migrating (phase {engine.state.phase.value}).")
        return False
    return True


def run_status(config: str) -> Optional[MigrationState]:
    """Prints the session phase, progress and task table."""
    engine = _open_engine(config)
    if engine is None:
        return None
    state = engine.state
    console = Console()
    console.print(
        f"Session [bold]{state.id.split('-')[0]}[/bold] • "
        f"Phase: [bold]{state.phase.value}[/bold] • Progress: {state.progress}%"
    )
    if state.uom_conflicts:
        _print_conflicts(state)
    if state.tasks:
        table = Table(title="Tasks")
        table.add_column("#", justify="right")
        table.add_column("Type")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Retries", justify="right")
        table.add_column("Error")
        styles = {
            TaskStatus.SUCCESS: "green",
            TaskStatus.FAILED: "red",
            TaskStatus.SKIPPED: "dim",
            TaskStatus.PENDING: "white",
        }
        for index, task in enumerate(state.tasks):
            marker = "▶ " if index == state.current_task_index else ""
            table.add_row(
                f"{marker}{index + 1}",
                task.type.value,
                task.name,
                f"[{styles[task.status]}]{task.status.value}[/{styles[task.status]}]",
                str(task.retries),
                task.error or "",
            )
        console.print(table)
    return state


def run_reset(config: str, yes: bool = False) -> bool:
    """Discards the session after confirmation."""
    engine = _open_engine(config)
    if engine is None:
        return False
    if not yes and not Confirm.ask(
        "Are you sure? This will clear current progress and logs.", default=False
    ):
        log.info("Reset cancelled.")
        return False
    engine.reset_migration()
    return True


def run_export_logs(config: str, out: Optional[str] = None) -> Optional[str]:
    """Writes the session log buffer to a JSON file."""
    engine = _open_engine(config)
    if engine is None:
        return None
    path = out or f"migration_logs_{engine.state.id}.json"
    engine.export_logs(path)
    return path
