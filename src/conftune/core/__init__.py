"""Core framework components for conftune."""

from conftune.core.exceptions import (
    TuneError,
    ConfigurationError,
    UserAbort,
    ValidationError,
    FormatError,
    ResourceUnavailableError,
    BackupError,
    UnsupportedKeyError,
)

from conftune.core.context import ExecutionContext, create_context
from conftune.core.output import console, Console, Verbosity
from conftune.core.config import TunerConfig, EnvOverrides, load_env_overrides
from conftune.core.audit import (
    AuditLogger,
    AuditEvent,
    AuditEventType,
    AuditResult,
    configure_audit_logger,
    get_audit_logger,
)

__all__ = [
    # Exceptions
    "TuneError",
    "ConfigurationError",
    "UserAbort",
    "ValidationError",
    "FormatError",
    "ResourceUnavailableError",
    "BackupError",
    "UnsupportedKeyError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "TunerConfig",
    "EnvOverrides",
    "load_env_overrides",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "configure_audit_logger",
    "get_audit_logger",
]
