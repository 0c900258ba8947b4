"""Backups of postgresql.conf taken before it is rewritten.

Backups are named <prefix><YYYYmmddHHMM> and live in the system temp
directory unless configured otherwise. Restoring re-scans the backup and
writes its lines over the configuration file.
"""

import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from conftune.core.audit import AuditEventType, get_audit_logger
from conftune.core.config import BackupConfig
from conftune.core.exceptions import BackupError
from conftune.services.conffile import ConfigFileState, KeyTable


BACKUP_DATE_FORMAT = "%Y%m%d%H%M"


@dataclass(frozen=True)
class BackupFile:
    """A backup found on disk."""

    path: Path
    created: datetime


class BackupManager:
    """Creates, lists and restores configuration backups."""

    def __init__(self, config: Optional[BackupConfig] = None) -> None:
        self.config = config or BackupConfig()

    @property
    def directory(self) -> Path:
        return self.config.directory or Path(tempfile.gettempdir())

    def backup_path(self, now: Optional[datetime] = None) -> Path:
        stamp = (now or datetime.now()).strftime(BACKUP_DATE_FORMAT)
        return self.directory / f"{self.config.prefix}{stamp}"

    def backup(self, state: ConfigFileState, now: Optional[datetime] = None) -> Path:
        """Write the current lines to a new backup file.

        Raises:
            BackupError: If the backup cannot be written
        """
        path = self.backup_path(now)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                state.write_to(f)
        except OSError as e:
            get_audit_logger().log_failure(AuditEventType.CONFIG_BACKUP, str(path), str(e))
            raise BackupError(
                f"could not create backup at {path}",
                details=[str(e)],
                hint="Set backup.directory in the configuration file to a writable directory",
            ) from e

        get_audit_logger().log_success(
            AuditEventType.CONFIG_BACKUP,
            str(path),
            message="Configuration backed up",
        )
        return path

    def list_backups(self) -> list[BackupFile]:
        """Backups matching the naming scheme, oldest first."""
        prefix = self.config.prefix
        found = []
        for path in self.directory.glob(f"{prefix}*"):
            try:
                created = datetime.strptime(path.name[len(prefix):], BACKUP_DATE_FORMAT)
            except ValueError:
                continue
            found.append(BackupFile(path=path, created=created))
        return sorted(found, key=lambda b: b.created)

    def restore(self, backup: Path, conf_path: Path) -> ConfigFileState:
        """Overwrite conf_path with the contents of a backup.

        Raises:
            BackupError: If either file cannot be read or written
        """
        try:
            with open(backup) as f:
                # Only the lines are needed, no key is interpreted
                state = ConfigFileState.scan(f, KeyTable(()))
        except OSError as e:
            raise BackupError(f"could not read backup {backup}", details=[str(e)]) from e

        try:
            with open(conf_path, "w") as f:
                state.write_to(f)
        except OSError as e:
            get_audit_logger().log_failure(AuditEventType.CONFIG_RESTORE, str(conf_path), str(e))
            raise BackupError(
                f"could not restore {conf_path}",
                details=[str(e)],
                hint="Check file permissions",
            ) from e

        get_audit_logger().log_success(
            AuditEventType.CONFIG_RESTORE,
            str(conf_path),
            message=f"Restored from {backup}",
            parameters={"backup": str(backup)},
        )
        return state
