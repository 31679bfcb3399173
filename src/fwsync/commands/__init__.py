"""CLI commands.

Helpers shared by the command modules: error reporting, audit logger
setup and store construction.
"""

import typer

from fwsync.core import (
    FwSyncError,
    CommandExecutor,
    ExecutionContext,
    configure_audit_logger,
    console,
)
from fwsync.core.audit import AuditLogger
from fwsync.services.netsecurity import NetSecurityStore


def handle_error(error: FwSyncError) -> None:
    """Handle an FwSyncError by printing formatted error and exiting."""
    console.error(error.message)

    if error.details:
        for detail in error.details:
            console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        console.hint(error.hint)

    raise typer.Exit(error.exit_code)


def setup_audit(ctx: ExecutionContext) -> AuditLogger:
    """Configure the global audit logger from the context's configuration."""
    settings = ctx.config.audit
    return configure_audit_logger(
        settings.log_path,
        enabled=settings.enabled,
        max_size_mb=settings.max_size_mb,
        backup_count=settings.backup_count,
    )


def open_store(ctx: ExecutionContext) -> NetSecurityStore:
    """Create the NetSecurity store, checking PowerShell is available."""
    executor = CommandExecutor(ctx)
    store_config = ctx.config.store
    resolved = executor.require(store_config.powershell)
    ctx.console.debug(f"Using PowerShell at {resolved}")
    return NetSecurityStore(ctx, executor, store_config)
