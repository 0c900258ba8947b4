"""Audit trail of changes made to postgresql.conf.

Each backup, tune and restore appends one JSON object per line to the audit
log. Appends hold an exclusive flock. Once the log grows past its size limit
it is shifted to audit.log.1, audit.log.2 and so on, keeping a fixed number.

Writing the audit log never fails a run: problems are reported at debug
verbosity.
"""

import fcntl
import getpass
import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from conftune.core.config import DEFAULT_AUDIT_LOG_PATH
from conftune.core.output import console


DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_KEEP = 5


class AuditEventType(Enum):
    """What happened to the configuration file."""
    CONFIG_BACKUP = "config.backup"
    CONFIG_MODIFY = "config.modify"
    CONFIG_RESTORE = "config.restore"


class AuditResult(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry_run"
    ABORTED = "aborted"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry for this uid
        return str(os.getuid())


@dataclass
class AuditEvent:
    """One line of the audit log."""

    event_type: AuditEventType
    result: AuditResult
    target: str
    message: Optional[str] = None
    error: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self, run_id: str) -> str:
        record = {
            "timestamp": self.timestamp.isoformat(),
            "run_id": run_id,
            "event": self.event_type.value,
            "result": self.result.value,
            "target": self.target,
            "user": _current_user(),
            "uid": os.getuid(),
            "message": self.message,
            "error": self.error,
            "parameters": self.parameters,
        }
        return json.dumps(record, default=str)


class AuditLogger:
    """Appends AuditEvents to a JSON-lines file.

    Args:
        log_path: Log file; parent directories are created on first write
        max_bytes: Size after which the log is rotated
        keep: Number of rotated files kept
        enabled: When False nothing is written
    """

    def __init__(
        self,
        log_path: Optional[Path] = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        keep: int = DEFAULT_KEEP,
        enabled: bool = True,
    ) -> None:
        self.log_path = Path(log_path or DEFAULT_AUDIT_LOG_PATH)
        self.max_bytes = max_bytes
        self.keep = keep
        self.enabled = enabled
        # Ties together the events of one conftune invocation
        self.run_id = uuid.uuid4().hex[:12]

    def record(
        self,
        event_type: AuditEventType,
        result: AuditResult,
        target: str,
        message: Optional[str] = None,
        error: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> None:
        if not self.enabled:
            return
        event = AuditEvent(
            event_type=event_type,
            result=result,
            target=target,
            message=message,
            error=error,
            parameters=parameters or {},
        )
        try:
            self.log_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                f.write(event.to_json(self.run_id) + "\n")
            if self.log_path.stat().st_size > self.max_bytes:
                self._rotate()
        except OSError as e:
            console.debug(f"Audit log not written to {self.log_path}: {e}")

    def _numbered(self, n: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{n}")

    def _rotate(self) -> None:
        for n in range(self.keep, 0, -1):
            src = self.log_path if n == 1 else self._numbered(n - 1)
            if src.exists():
                src.replace(self._numbered(n))

    def log_success(
        self,
        event_type: AuditEventType,
        target: str,
        message: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> None:
        self.record(event_type, AuditResult.SUCCESS, target, message=message, parameters=parameters)

    def log_failure(self, event_type: AuditEventType, target: str, error: str) -> None:
        self.record(event_type, AuditResult.FAILURE, target, error=error)

    def log_dry_run(self, event_type: AuditEventType, target: str, message: Optional[str] = None) -> None:
        self.record(event_type, AuditResult.DRY_RUN, target, message=message)

    def log_aborted(self, event_type: AuditEventType, target: str, message: Optional[str] = None) -> None:
        """The operator declined a prompt; nothing was written."""
        self.record(event_type, AuditResult.ABORTED, target, message=message)


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """The logger configured for this run, or a default one."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def configure_audit_logger(log_path: Optional[Path] = None, enabled: bool = True) -> AuditLogger:
    """Replace the global logger according to the audit configuration."""
    global _audit_logger
    _audit_logger = AuditLogger(log_path=log_path, enabled=enabled)
    return _audit_logger
