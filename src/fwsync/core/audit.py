"""Audit logging for rule mutations.

Provides:
- JSON-lines audit logs
- Session tracking
- Automatic log rotation
"""

import getpass
import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from fwsync.core.output import console


DEFAULT_MAX_SIZE_MB = 50
DEFAULT_BACKUP_COUNT = 5


class AuditEventType(Enum):
    """Types of auditable events."""
    # Sync lifecycle
    SYNC_START = "sync.start"
    SYNC_COMPLETE = "sync.complete"

    # Rule operations
    RULE_CREATE = "rule.create"
    RULE_UPDATE = "rule.update"
    RULE_DISABLE = "rule.disable"
    RULE_CONTAIN = "rule.contain"
    RULE_REJECT = "rule.reject"
    RULE_FAILURE = "rule.failure"

    # Capture
    EXPORT = "desired_state.export"


class AuditResult(Enum):
    """Result of an audited operation."""
    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry_run"
    PARTIAL = "partial"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


@dataclass
class AuditEvent:
    """Represents a single audit event."""
    event_type: AuditEventType
    result: AuditResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str = field(default_factory=_current_user)

    # Target information
    rule_id: Optional[str] = None
    attribute: Optional[str] = None
    before: Optional[Any] = None
    after: Optional[Any] = None

    # Result details
    message: Optional[str] = None
    error: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)

    session_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "result": self.result.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "rule_id": self.rule_id,
            "attribute": self.attribute,
            "before": self.before,
            "after": self.after,
            "message": self.message,
            "error": self.error,
            "parameters": self.parameters,
            "session_id": self.session_id,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class AuditLogger:
    """Audit logger for tracking rule changes.

    Features:
    - Append-only JSON log file
    - Automatic log rotation
    - Session tracking
    """

    def __init__(
        self,
        log_path: Path,
        max_size_mb: int = DEFAULT_MAX_SIZE_MB,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        enabled: bool = True,
    ) -> None:
        """Initialize audit logger.

        Args:
            log_path: Path to audit log file
            max_size_mb: Maximum log file size before rotation
            backup_count: Number of backup files to keep
            enabled: Whether logging is enabled
        """
        self.log_path = log_path
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self.enabled = enabled
        self.session_id = str(uuid.uuid4())

    def _ensure_log_directory(self) -> bool:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            console.debug(f"Cannot create audit log directory: {e}")
            return False

    def log(self, event: AuditEvent) -> None:
        """Log an audit event.

        Write failures are reported in debug output and never abort a run.
        """
        if not self.enabled:
            return

        event.session_id = self.session_id
        log_line = event.to_json() + "\n"

        if not self._ensure_log_directory():
            return

        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(log_line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            console.debug(f"Failed to write audit log: {e}")
            return

        self._rotate_if_needed()

    def _rotate_if_needed(self) -> None:
        try:
            if self.log_path.stat().st_size > self.max_size_bytes:
                self._rotate_logs()
        except OSError as e:
            console.debug(f"Audit log rotation failed: {e}")

    def _rotate_logs(self) -> None:
        oldest = self.log_path.with_suffix(f".{self.backup_count}")
        if oldest.exists():
            oldest.unlink()

        for i in range(self.backup_count - 1, 0, -1):
            src = self.log_path.with_suffix(f".{i}")
            dst = self.log_path.with_suffix(f".{i + 1}")
            if src.exists():
                src.replace(dst)

        self.log_path.replace(self.log_path.with_suffix(".1"))
        self.log_path.touch()

    # Convenience methods
    def log_change(
        self,
        event_type: AuditEventType,
        rule_id: str,
        *,
        attribute: Optional[str] = None,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        dry_run: bool = False,
        message: Optional[str] = None,
    ) -> None:
        """Log a rule change (or would-be change in dry-run)."""
        self.log(AuditEvent(
            event_type=event_type,
            result=AuditResult.DRY_RUN if dry_run else AuditResult.SUCCESS,
            rule_id=rule_id,
            attribute=attribute,
            before=before,
            after=after,
            message=message,
        ))

    def log_failure(
        self,
        event_type: AuditEventType,
        rule_id: Optional[str],
        error: str,
        *,
        attribute: Optional[str] = None,
    ) -> None:
        """Log a failed operation."""
        self.log(AuditEvent(
            event_type=event_type,
            result=AuditResult.FAILURE,
            rule_id=rule_id,
            attribute=attribute,
            error=error,
        ))

    def log_summary(
        self,
        event_type: AuditEventType,
        result: AuditResult,
        parameters: dict[str, Any],
        message: Optional[str] = None,
    ) -> None:
        """Log a run-level event with its parameters."""
        self.log(AuditEvent(
            event_type=event_type,
            result=result,
            parameters=parameters,
            message=message,
        ))


# Global audit logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger, disabled until configured."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger(Path(os.devnull), enabled=False)
    return _audit_logger


def configure_audit_logger(
    log_path: Path,
    enabled: bool = True,
    max_size_mb: int = DEFAULT_MAX_SIZE_MB,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> AuditLogger:
    """Configure and return the global audit logger."""
    global _audit_logger
    _audit_logger = AuditLogger(
        log_path=log_path,
        max_size_mb=max_size_mb,
        backup_count=backup_count,
        enabled=enabled,
    )
    return _audit_logger

