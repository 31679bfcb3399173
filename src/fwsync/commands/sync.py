"""Sync command.

Reconciles the live Windows Firewall rules with a desired-state file.
The command is idempotent: a second run against an unchanged store
issues no mutations.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from fwsync.commands import handle_error, open_store, setup_audit
from fwsync.core import FwSyncError, create_context
from fwsync.core.config import DEFAULT_CONFIG_PATH
from fwsync.services.desired_state import read_desired_state
from fwsync.services.sync import RuleSynchronizer, SyncReport


def sync(
    path: Annotated[
        Path,
        typer.Argument(help="Desired-state CSV file", dir_okay=False),
    ],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", "--silent", help="Only show warnings and errors"),
    ] = False,
    fast: Annotated[
        bool,
        typer.Option("--fast", help="Only reconcile the Enabled state of existing rules"),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity"),
    ] = 0,
    no_color: Annotated[
        bool,
        typer.Option("--no-color", help="Disable colored output"),
    ] = False,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
            dir_okay=False,
        ),
    ] = None,
) -> None:
    """Synchronize firewall rules with a desired-state file.

    Rules in the file's scope that are missing from the file are disabled
    (never deleted). Every rule in the file is then created or updated.
    A "*" in a value only verifies the live value; a mismatch disables
    the rule. Values set to the ignore tag are never evaluated.

    Examples:
        fwsync sync rules.csv              # Apply
        fwsync sync rules.csv --dry-run    # Preview
        fwsync sync rules.csv --fast       # Enabled state only
    """
    ctx = create_context(
        dry_run=dry_run,
        fast=fast,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )

    try:
        audit = setup_audit(ctx)
        records = read_desired_state(path, ctx.config.reconcile)
        ctx.console.verbose(f"Read {max(len(records) - 1, 0)} desired rule(s) from {path}")

        store = open_store(ctx)
        report = RuleSynchronizer(ctx, store, audit).run(records)

    except FwSyncError as e:
        handle_error(e)
        return

    _print_report(ctx, report)


def _print_report(ctx, report: SyncReport) -> None:
    """Print the run summary and the failure warning."""
    if report.dry_run and not ctx.is_quiet:
        ctx.console.info(f"Dry run: {report.mutation_count} change(s) would be made")

    ctx.console.operation_summary("Firewall sync", report.success, report.summary())

    if report.failures:
        ctx.console.warn(f"{len(report.failures)} rule(s) failed")
        for failure in report.failures:
            ctx.console.verbose(f"{failure.rule_id} ({failure.phase}): {failure.error}")
