"""Export command.

Captures the live rules in a filter scope into a desired-state file.
The file starts with a Default Record carrying the fwsync version and
the filter, which `fwsync sync` later uses as its scope.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from fwsync import __version__
from fwsync.commands import handle_error, open_store, setup_audit
from fwsync.core import AuditEventType, AuditResult, FwSyncError, create_context
from fwsync.core.config import DEFAULT_CONFIG_PATH
from fwsync.services.compat import default_record_row
from fwsync.services.desired_state import write_desired_state
from fwsync.services.store import RuleFilter

# Columns shown in the capture table
TABLE_COLUMNS = ["ID", "DisplayName", "Enabled", "Direction", "Action", "Protocol", "LocalPort"]


def export(
    path: Annotated[
        Path,
        typer.Argument(help="Destination CSV file", dir_okay=False),
    ],
    display_name: Annotated[
        Optional[str],
        typer.Option("--display-name", help="DisplayName contains (or matches a * pattern)"),
    ] = None,
    group: Annotated[
        Optional[str],
        typer.Option("--group", help="Group contains (or matches a * pattern)"),
    ] = None,
    enabled: Annotated[
        Optional[str],
        typer.Option("--enabled", help="True or False"),
    ] = None,
    profile: Annotated[
        Optional[str],
        typer.Option("--profile", help="Profile, e.g. Domain or Any"),
    ] = None,
    direction: Annotated[
        Optional[str],
        typer.Option("--direction", help="Inbound or Outbound"),
    ] = None,
    action: Annotated[
        Optional[str],
        typer.Option("--action", help="Allow or Block"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file without asking"),
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
    """Capture live firewall rules into a desired-state file.

    Edit the file (set values, use "*" patterns or the ignore tag), then
    apply it with fwsync sync.

    Examples:
        fwsync export rules.csv --group "Remote Desktop"
        fwsync export inbound.csv --direction Inbound --enabled True
    """
    ctx = create_context(verbose=verbose, no_color=no_color, config=config)

    rule_filter = RuleFilter.from_values(
        display_name=display_name,
        group=group,
        enabled=enabled,
        profile=profile,
        direction=direction,
        action=action,
    )

    if path.exists() and not ctx.console.confirm(
        f"{path} exists. Overwrite?", skip_confirm=force
    ):
        ctx.console.info("Export cancelled")
        raise typer.Exit(1)

    try:
        audit = setup_audit(ctx)
        store = open_store(ctx)

        ctx.console.step(f"Reading live rules ({rule_filter.describe()})")
        rules = store.enumerate(rule_filter, full=True)

        default_row = default_record_row(
            ctx.config.reconcile.default_marker, __version__, rule_filter
        )
        count = write_desired_state(path, default_row, (rule.to_row() for rule in rules))

    except FwSyncError as e:
        handle_error(e)
        return
    except OSError as e:
        ctx.console.error(f"Cannot write {path}: {e}")
        raise typer.Exit(1)

    if rules:
        ctx.console.table(
            "Captured rules",
            TABLE_COLUMNS,
            [[rule.get(name) for name in TABLE_COLUMNS] for rule in rules],
        )

    audit.log_summary(
        AuditEventType.EXPORT,
        AuditResult.SUCCESS,
        {"path": str(path), "scope": rule_filter.describe(), "rules": count},
    )
    ctx.console.success(f"Exported {count} rule(s) to {path}")
