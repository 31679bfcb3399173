"""Command execution with dry-run support.

Provides:
- Safe command execution with output capture
- PowerShell script execution
- Dry-run suppression of mutating commands
"""

import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional

from fwsync.core.context import ExecutionContext
from fwsync.core.exceptions import ExecutionError, PrerequisiteError


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0


class CommandExecutor:
    """Safe command execution with dry-run support and output capture.

    Features:
    - Dry-run mode skips mutating commands, reads still run
    - Output capture for processing
    - Optional timeout
    """

    def __init__(self, ctx: ExecutionContext) -> None:
        """Initialize executor with context.

        Args:
            ctx: Execution context with flags
        """
        self.ctx = ctx

    def run(
        self,
        command: list[str],
        *,
        description: Optional[str] = None,
        check: bool = True,
        mutating: bool = True,
        timeout: Optional[int] = None,
        display: Optional[str] = None,
    ) -> CommandResult:
        """Execute a command.

        Args:
            command: Command as list of strings
            description: Human-readable description for logging
            check: Raise exception on non-zero exit
            mutating: Command changes system state (skipped in dry-run)
            timeout: Command timeout in seconds
            display: Text shown in logs instead of the full command line

        Returns:
            CommandResult with output

        Raises:
            ExecutionError: If command fails and check=True
        """
        if description:
            self.ctx.console.step(description)

        cmd_display = display or shlex.join(command)
        self.ctx.console.debug(f"Running: {cmd_display}")

        if self.ctx.dry_run and mutating:
            self.ctx.console.dry_run_msg(f"Run: {cmd_display}")
            return CommandResult(
                command=command,
                return_code=0,
                stdout="",
                stderr="",
            )

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {description or cmd_display}",
                command=cmd_display,
            )
        except FileNotFoundError:
            raise PrerequisiteError(
                f"Command not found: {command[0]}",
                hint="Check the store.powershell setting or FWSYNC_POWERSHELL",
            )

        cmd_result = CommandResult(
            command=command,
            return_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

        if check and result.returncode != 0:
            raise ExecutionError(
                f"Command failed: {description or cmd_display}",
                command=cmd_display,
                return_code=result.returncode,
                stderr=(result.stderr or "").strip() or None,
            )

        return cmd_result

    def run_powershell(
        self,
        script: str,
        *,
        executable: str = "powershell.exe",
        description: Optional[str] = None,
        mutating: bool = True,
        timeout: Optional[int] = None,
    ) -> str:
        """Execute a PowerShell script and return its standard output.

        Args:
            script: Script text passed to -Command
            executable: PowerShell executable (powershell.exe or pwsh)
            description: Human-readable description
            mutating: Script changes system state (skipped in dry-run)
            timeout: Timeout in seconds

        Returns:
            Stripped standard output

        Raises:
            ExecutionError: If the script fails
        """
        command = [
            executable,
            "-NoProfile",
            "-NonInteractive",
            "-Command",
            script,
        ]

        # Scripts are long; show only the first line unless debugging
        first_line = script.strip().splitlines()[0] if script.strip() else ""
        display = f"{executable} -Command {first_line}"
        if self.ctx.is_debug:
            self.ctx.console.debug(f"Script:\n{script}")

        result = self.run(
            command,
            description=description,
            mutating=mutating,
            timeout=timeout,
            display=display,
        )
        return result.stdout.strip()

    def require(self, executable: str) -> str:
        """Ensure an executable is available on PATH.

        Returns:
            Resolved path of the executable

        Raises:
            PrerequisiteError: If it cannot be found
        """
        path = shutil.which(executable)
        if path is None:
            raise PrerequisiteError(
                f"Required command not found: {executable}",
                hint="Install PowerShell or set FWSYNC_POWERSHELL to its path",
            )
        return path
