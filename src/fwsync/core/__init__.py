"""Core framework components for fwsync."""

from fwsync.core.exceptions import (
    FwSyncError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    PrerequisiteError,
    DesiredStateError,
    CompatibilityError,
    ContractError,
    StoreError,
)

from fwsync.core.context import ExecutionContext, create_context
from fwsync.core.output import console, Console, Verbosity
from fwsync.core.config import AppConfig, ToolConfig
from fwsync.core.audit import (
    AuditLogger,
    AuditEvent,
    AuditEventType,
    AuditResult,
    get_audit_logger,
    configure_audit_logger,
)
from fwsync.core.executor import CommandExecutor, CommandResult

__all__ = [
    # Exceptions
    "FwSyncError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "PrerequisiteError",
    "DesiredStateError",
    "CompatibilityError",
    "ContractError",
    "StoreError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "ToolConfig",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "get_audit_logger",
    "configure_audit_logger",
    # Executor
    "CommandExecutor",
    "CommandResult",
]
