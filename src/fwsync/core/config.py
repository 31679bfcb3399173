"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides
- Configuration initialization and display
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from fwsync.core.exceptions import ConfigurationError
from fwsync.core.validation import validate_tag, validate_version, validate_wildcard


# Default configuration paths
DEFAULT_BASE_DIR = Path(os.environ.get("PROGRAMDATA", "/etc")) / "fwsync"
DEFAULT_CONFIG_PATH = DEFAULT_BASE_DIR / "config.yaml"
DEFAULT_LOG_DIR = DEFAULT_BASE_DIR / "logs"


class ReconcileConfig(BaseModel):
    """Reconciliation semantics."""

    ignore_tag: str = "_ignore"
    wildcard: str = "*"
    default_marker: str = "_default"
    minimum_version: str = "1.0.0"

    @field_validator("ignore_tag")
    @classmethod
    def validate_ignore_tag(cls, v: str) -> str:
        return validate_tag(v, "ignore tag")

    @field_validator("default_marker")
    @classmethod
    def validate_default_marker(cls, v: str) -> str:
        return validate_tag(v, "default marker")

    @field_validator("wildcard")
    @classmethod
    def validate_wildcard(cls, v: str) -> str:
        return validate_wildcard(v)

    @field_validator("minimum_version")
    @classmethod
    def validate_minimum_version(cls, v: str) -> str:
        return validate_version(v)

    @model_validator(mode="after")
    def check_markers_distinct(self) -> "ReconcileConfig":
        if self.wildcard in self.ignore_tag:
            raise ValueError("ignore_tag cannot contain the wildcard marker")
        if self.ignore_tag == self.default_marker:
            raise ValueError("ignore_tag and default_marker must differ")
        return self


class StoreConfig(BaseModel):
    """Firewall rule store (PowerShell NetSecurity) configuration."""

    powershell: str = "powershell.exe"
    timeout: Optional[int] = None  # seconds, None = wait for the store

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        return v


class AuditConfig(BaseModel):
    """Audit log configuration."""

    enabled: bool = True
    log_path: Path = DEFAULT_LOG_DIR / "audit.log"
    max_size_mb: int = 50
    backup_count: int = 5


class ToolConfig(BaseModel):
    """Root configuration model.

    Loaded from the YAML file at DEFAULT_CONFIG_PATH when present.
    """

    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @classmethod
    def load(cls, path: Path) -> "ToolConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it with: fwsync config init",
            )

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run as administrator",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "ToolConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        data = self.model_dump(mode="json", exclude_none=True)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class EnvOverrides(BaseSettings):
    """Overrides loaded from environment variables."""

    fwsync_powershell: Optional[str] = Field(None, alias="FWSYNC_POWERSHELL")
    fwsync_audit_log: Optional[Path] = Field(None, alias="FWSYNC_AUDIT_LOG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


class AppConfig:
    """Application configuration combining config file and environment.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[ToolConfig] = None,
    ) -> None:
        """Initialize application configuration.

        Args:
            config_path: Path to config file (uses default if None)
            config: Pre-loaded config (skips file loading if provided)
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = config or ToolConfig.load_or_default(self.config_path)
        self._env = EnvOverrides()

    @property
    def config(self) -> ToolConfig:
        """Get the tool configuration."""
        return self._config

    @property
    def reconcile(self) -> ReconcileConfig:
        """Shortcut to reconciliation config."""
        return self._config.reconcile

    @property
    def store(self) -> StoreConfig:
        """Store config with environment overrides applied."""
        if self._env.fwsync_powershell:
            return self._config.store.model_copy(
                update={"powershell": self._env.fwsync_powershell}
            )
        return self._config.store

    @property
    def audit(self) -> AuditConfig:
        """Audit config with environment overrides applied."""
        if self._env.fwsync_audit_log:
            return self._config.audit.model_copy(
                update={"log_path": self._env.fwsync_audit_log}
            )
        return self._config.audit


def get_example_config() -> str:
    """Generate example configuration file content."""
    return """# fwsync configuration

# Reconciliation semantics
reconcile:
  ignore_tag: _ignore       # field value meaning "do not evaluate or touch"
  wildcard: "*"             # verify-by-pattern marker, never used to overwrite
  default_marker: _default  # ID prefix of the Default Record
  minimum_version: 1.0.0    # oldest desired-state format accepted

# Firewall rule store (Windows NetSecurity via PowerShell)
store:
  powershell: powershell.exe  # override with FWSYNC_POWERSHELL
  # timeout: 120              # seconds per store call, unset = no timeout

# Audit log
audit:
  enabled: true
  # log_path: C:/ProgramData/fwsync/logs/audit.log  # override with FWSYNC_AUDIT_LOG
  max_size_mb: 50
  backup_count: 5
"""


def init_config(path: Path, force: bool = False) -> None:
    """Initialize a new configuration file.

    Args:
        path: Path to create config file
        force: Overwrite if exists

    Raises:
        ConfigurationError: If file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config(), encoding="utf-8")
