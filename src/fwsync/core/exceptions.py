"""Custom exceptions for fwsync.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class FwSyncError(Exception):
    """Base exception for all fwsync errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(FwSyncError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(FwSyncError):
    """Input validation errors.

    Raised when:
    - Invalid version strings
    - Invalid wildcard or tag settings
    """
    exit_code = 3


class ExecutionError(FwSyncError):
    """Command execution failures.

    Raised when:
    - Shell command returns non-zero exit code
    - Command times out
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class PrerequisiteError(FwSyncError):
    """Missing prerequisites.

    Raised when:
    - PowerShell executable not found
    - NetSecurity module unavailable
    """
    exit_code = 6


# Reconciliation errors

class DesiredStateError(FwSyncError):
    """Desired-state input errors.

    Raised when:
    - Desired-state file not found or unreadable
    - Collection is empty
    - First record is not a well-formed Default Record
    """
    exit_code = 20


class CompatibilityError(FwSyncError):
    """Desired-state version gate failures.

    Raised when:
    - Embedded tool version cannot be parsed
    - Embedded version is below the minimum supported version
    """
    exit_code = 21

    def __init__(
        self,
        message: str,
        *,
        found: Optional[str] = None,
        minimum: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.found = found
        self.minimum = minimum


class ContractError(FwSyncError):
    """Internal contract violation.

    Raised when a desired record is reconciled against a live rule
    with a different ID. Always fatal.
    """
    exit_code = 22


class StoreError(FwSyncError):
    """Firewall rule store errors.

    Raised when:
    - Enumerating rules fails
    - Creating, updating or renaming a rule fails
    - Store output cannot be parsed
    """
    exit_code = 23

    def __init__(
        self,
        message: str,
        *,
        rule_id: Optional[str] = None,
        attribute: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.rule_id = rule_id
        self.attribute = attribute
