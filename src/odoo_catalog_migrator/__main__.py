"""Command-line interface for odoo-catalog-migrator."""

import sys

import click

from .enums import MigrationPhase
from .logging_config import setup_logging
from .migrator import (
    run_analysis,
    run_check,
    run_confirm,
    run_create_unit,
    run_export_logs,
    run_migration,
    run_pause,
    run_reset,
    run_resolve,
    run_status,
)

config_option = click.option(
    "-c",
    "--config",
    required=True,
    help="Configuration file for connection parameters.",
)
file_option = click.option(
    "--file", "filename", required=True, help="Local catalog CSV file."
)
sep_option = click.option(
    "-s", "--sep", "separator", default=";", help="CSV separator character."
)
encoding_option = click.option(
    "--encoding", default="utf8", help="Encoding of the catalog file."
)
skip_check_option = click.option(
    "--skip-check",
    is_flag=True,
    default=False,
    help="Do not run the pre-flight checks.",
)


def _exit(ok: bool) -> None:
    if not ok:
        sys.exit(1)


@click.group()
@click.version_option()
@click.option(
    "-v", "--verbose", is_flag=True, help="Enable verbose, debug-level logging."
)
def cli(verbose: bool) -> None:
    """Odoo Catalog Migrator: push a local product catalog into Odoo."""
    setup_logging(verbose)


# --- Check Command ---
@cli.command(name="check")
@config_option
def check_cmd(config: str) -> None:
    """Runs the pre-flight checks against the server."""
    _exit(run_check(config))


# --- Analyze Command ---
@cli.command(name="analyze")
@config_option
@file_option
@sep_option
@encoding_option
@skip_check_option
def analyze_cmd(**kwargs) -> None:
    """Compares the catalog with the server and builds the migration plan."""
    phase = run_analysis(**kwargs)
    _exit(phase in (MigrationPhase.IDLE, MigrationPhase.RESOLVING))


# --- Conflict Resolution Commands ---
@cli.command(name="resolve")
@config_option
@click.option("--uom", required=True, help="The conflicting local unit name.")
@click.option(
    "--unit-id", required=True, type=int, help="The remote unit to map it to."
)
def resolve_cmd(**kwargs) -> None:
    """Maps a conflicting local unit to an existing remote unit."""
    _exit(run_resolve(**kwargs))


@cli.command(name="create-unit")
@config_option
@click.option("--uom", required=True, help="The conflicting local unit name.")
def create_unit_cmd(**kwargs) -> None:
    """Creates a conflicting local unit on the server."""
    _exit(run_create_unit(**kwargs) is not None)


@cli.command(name="confirm")
@config_option
@file_option
@sep_option
@encoding_option
def confirm_cmd(**kwargs) -> None:
    """Confirms all unit mappings and builds the migration plan."""
    _exit(run_confirm(**kwargs))


# --- Execution Commands ---
@cli.command(name="run")
@config_option
@skip_check_option
def run_cmd(**kwargs) -> None:
    """Starts or resumes the migration. Ctrl+C pauses after the current task."""
    phase = run_migration(**kwargs)
    _exit(phase == MigrationPhase.DONE)


@cli.command(name="pause")
@config_option
def pause_cmd(config: str) -> None:
    """Marks an interrupted migration as paused."""
    _exit(run_pause(config))


@cli.command(name="status")
@config_option
def status_cmd(config: str) -> None:
    """Shows the session phase, progress and tasks."""
    _exit(run_status(config) is not None)


@cli.command(name="reset")
@config_option
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
def reset_cmd(**kwargs) -> None:
    """Discards the current session, its progress and its logs."""
    _exit(run_reset(**kwargs))


@cli.command(name="export-logs")
@config_option
@click.option("--out", default=None, help="Output JSON file.")
def export_logs_cmd(**kwargs) -> None:
    """Writes the session logs to a JSON file."""
    _exit(run_export_logs(**kwargs) is not None)


if __name__ == "__main__":
    cli()
