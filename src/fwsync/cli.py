"""Main CLI entry point using Typer.

This module defines the root CLI application and global options.
Commands are registered from submodules.
"""

from pathlib import Path
from typing import Optional, Annotated

import typer
from rich.console import Console

from fwsync import __version__
from fwsync.core.context import ExecutionContext, create_context
from fwsync.core.config import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    get_example_config,
    init_config,
)
from fwsync.core.exceptions import FwSyncError
from fwsync.commands import handle_error
from fwsync.commands.export import export
from fwsync.commands.sync import sync


# Create the main Typer app
app = typer.Typer(
    name="fwsync",
    help="Windows Firewall rule synchronization.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration management.",
    no_args_is_help=True,
)

app.command("sync")(sync)
app.command("export")(export)
app.add_typer(config_app, name="config")


# Type aliases for common options
ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Overwrite existing files.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"fwsync version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """fwsync - Windows Firewall rule synchronization.

    Brings the live firewall rule store in line with a desired-state file
    captured by [bold]fwsync export[/bold] and edited by an operator.

    [bold]Safety:[/bold]
    - Rules are never deleted, only disabled
    - "*" values are verified, never written
    - Dry-run mode to preview changes
    - Audit logging of every change

    [bold]Examples:[/bold]
        fwsync export rules.csv --group "Remote Desktop"
        fwsync sync rules.csv --dry-run
        fwsync sync rules.csv --fast
        fwsync config show
    """
    pass


def get_context(
    verbose: int = 0,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> ExecutionContext:
    """Create execution context from CLI options."""
    return create_context(
        verbose=verbose,
        no_color=no_color,
        config=config,
    )


# ============================================================================
# Config commands
# ============================================================================

@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Show current configuration.

    Displays the loaded configuration with environment overrides.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        app_config = ctx.config

        ctx.console.print()
        ctx.console.print(f"[bold]Configuration file:[/bold] {ctx.config_path}")
        ctx.console.print(f"[bold]File exists:[/bold] {ctx.config_path.exists()}")
        ctx.console.print()

        ctx.console.yaml(app_config.config.to_yaml(), title="Configuration")

        # Values after FWSYNC_* environment overrides
        audit = app_config.audit
        ctx.console.table("Effective settings", ["Setting", "Value"], [
            ["PowerShell", app_config.store.powershell],
            ["Audit log", str(audit.log_path) if audit.enabled else "disabled"],
        ])

    except FwSyncError as e:
        handle_error(e)


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: ForceOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Initialize a new configuration file.

    Creates a configuration file with the defaults and comments.
    """
    ctx = get_context(no_color=no_color, config=config)
    config_path = ctx.config_path

    try:
        init_config(config_path, force=force)
        ctx.console.success(f"Configuration file created: {config_path}")
        ctx.console.info("Edit the file to customize settings.")
        ctx.console.hint("FWSYNC_POWERSHELL and FWSYNC_AUDIT_LOG override the file")

    except FwSyncError as e:
        handle_error(e)
    except OSError as e:
        ctx.console.error(f"Cannot write {config_path}: {e}")
        raise typer.Exit(1)


@config_app.command("validate")
def config_validate(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Validate configuration file.

    Checks that the configuration file exists, is valid YAML,
    and all values pass validation.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        if not ctx.config_path.exists():
            ctx.console.warn(f"Configuration file not found, defaults apply: {ctx.config_path}")
            return

        # Raises ConfigurationError if invalid
        app_config = AppConfig(config_path=ctx.config_path)

        ctx.console.success(f"Configuration is valid: {ctx.config_path}")

        if ctx.is_verbose:
            ctx.console.yaml(app_config.config.to_yaml())

    except FwSyncError as e:
        handle_error(e)


@config_app.command("example")
def config_example(no_color: NoColorOption = False) -> None:
    """Print example configuration file.

    Outputs a complete example configuration with comments.
    """
    ctx = get_context(no_color=no_color)
    example = get_example_config()
    ctx.console.print(example, markup=False, highlight=False)


# Entry point
if __name__ == "__main__":
    app()
