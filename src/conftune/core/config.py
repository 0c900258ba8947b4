"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides for resource inputs
- Example configuration display
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from conftune.core.exceptions import ConfigurationError


# Default configuration paths
DEFAULT_CONFIG_PATH = Path(os.path.expanduser("~/.config/conftune/config.yaml"))
DEFAULT_AUDIT_LOG_PATH = Path(os.path.expanduser("~/.local/state/conftune/audit.log"))


class DefaultsConfig(BaseModel):
    """Defaults applied when a flag is not given on the command line."""

    profile: str = "default"
    pg_version: Optional[str] = None
    pg_config: str = "pg_config"
    max_background_workers: int = 16
    library: str = "timescaledb"

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        valid_profiles = {"default", "promscale"}
        if v not in valid_profiles:
            raise ValueError(f"Profile must be one of: {sorted(valid_profiles)}")
        return v

    @field_validator("max_background_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 16:
            raise ValueError("max_background_workers must be at least 16")
        return v


class BackupConfig(BaseModel):
    """Where backups of postgresql.conf are written before changes."""

    enabled: bool = True
    directory: Optional[Path] = None  # system temp dir when unset
    prefix: str = "conftune.backup"

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("prefix must be a non-empty file name")
        return v


class AuditConfig(BaseModel):
    """JSON audit log settings."""

    enabled: bool = True
    path: Path = DEFAULT_AUDIT_LOG_PATH


class TunerConfig(BaseModel):
    """Root configuration model, loaded from YAML."""

    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @classmethod
    def load(cls, path: Path) -> "TunerConfig":
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
                hint="Print a starting point with: conftune config example",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError as e:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions",
            ) from e

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "TunerConfig":
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
    """Resource overrides read from the environment.

    Command-line flags take precedence over these.
    """

    model_config = SettingsConfigDict(env_prefix="CONFTUNE_", extra="ignore")

    memory: Optional[str] = None
    cpus: Optional[int] = None
    profile: Optional[str] = None
    pg_version: Optional[str] = None


def load_env_overrides() -> EnvOverrides:
    """Read CONFTUNE_* environment variables.

    Raises:
        ConfigurationError: If a variable has an invalid value
    """
    try:
        return EnvOverrides()
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid CONFTUNE_* environment variable",
            details=[str(e)],
        ) from e


def get_example_config() -> str:
    """Generate example configuration file content."""
    return """# conftune configuration
# Command-line flags always win over these values.
# CONFTUNE_MEMORY, CONFTUNE_CPUS, CONFTUNE_PROFILE and CONFTUNE_PG_VERSION
# environment variables sit between flags and this file.

defaults:
  profile: default          # default, promscale
  # pg_version: "16"        # detected with pg_config when unset
  pg_config: pg_config
  max_background_workers: 16
  library: timescaledb      # added to shared_preload_libraries

backup:
  enabled: true
  # directory: /var/backups/conftune   # system temp dir when unset
  prefix: conftune.backup

audit:
  enabled: true
  # path: ~/.local/state/conftune/audit.log
"""
