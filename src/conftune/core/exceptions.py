"""Errors raised by conftune.

Each error class maps to its own process exit code. The CLI prints the
message, any detail lines and a hint, then exits with that code.
"""

from typing import Optional


class TuneError(Exception):
    """Base exception for all conftune errors.

    Attributes:
        message: One-line description shown after "ERROR:"
        hint: What the operator can do about it
        details: Extra lines shown dimmed below the message
        exit_code: Process exit code for this class of error
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


class ConfigurationError(TuneError):
    """Tool configuration errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    - postgresql.conf cannot be located or opened
    """
    exit_code = 2


class UserAbort(TuneError):
    """The operator declined or quit a prompt.

    Nothing is written to disk once this is raised.
    """
    exit_code = 3


class ValidationError(TuneError):
    """Input validation errors.

    Raised when:
    - Unknown or unsupported PostgreSQL major version
    - Invalid memory or disk size flag
    - Too few background workers
    """
    exit_code = 4


class FormatError(TuneError):
    """A value string failed unit, number or bool parsing.

    Recovered by the decision engine: the setting is shown as unparsable.
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        value: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.value = value


class ResourceUnavailableError(TuneError):
    """A settings group cannot make recommendations for these resources.

    Not a failure: the group is skipped.
    """
    exit_code = 6


class BackupError(TuneError):
    """Backup/restore errors.

    Raised when:
    - Backup file cannot be written
    - No backups found to restore
    - Restore target cannot be written
    """
    exit_code = 12


class UnsupportedKeyError(TuneError):
    """A key is outside its group, or outside the key table the file was scanned with.

    This is an integrity fault in the key/group partition, never bad input.
    """
    exit_code = 70

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        group: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.key = key
        self.group = group
