"""Unit tests for configuration backups."""

from datetime import datetime
from unittest.mock import patch

import pytest

from conftune.core.audit import AuditEventType
from conftune.core.config import BackupConfig
from conftune.core.exceptions import BackupError
from conftune.services.backup import BackupManager
from conftune.services.conffile import ConfigFileState, build_key_table


KEY_TABLE = build_key_table()


@pytest.fixture
def mock_audit():
    """Mock the audit logger used by backups."""
    with patch("conftune.services.backup.get_audit_logger") as mock:
        yield mock.return_value


@pytest.fixture
def manager(tmp_path):
    return BackupManager(BackupConfig(directory=tmp_path / "backups"))


class TestBackup:
    """Tests for creating backups."""

    def test_backup_path_uses_timestamp(self, manager, tmp_path):
        path = manager.backup_path(datetime(2024, 1, 2, 3, 4))
        assert path == tmp_path / "backups" / "conftune.backup202401020304"

    def test_default_directory_is_temp(self):
        with patch("conftune.services.backup.tempfile.gettempdir", return_value="/scratch"):
            assert str(BackupManager().directory) == "/scratch"

    def test_backup_writes_lines(self, manager, mock_audit):
        state = ConfigFileState.scan("shared_buffers = 128MB\t# min\n# end", KEY_TABLE)

        path = manager.backup(state, now=datetime(2024, 1, 2, 3, 4))

        assert path.read_text() == "shared_buffers = 128MB\t# min\n# end\n"
        mock_audit.log_success.assert_called_once()
        assert mock_audit.log_success.call_args[0][0] == AuditEventType.CONFIG_BACKUP

    def test_backup_failure(self, tmp_path, mock_audit):
        """An unwritable directory raises BackupError and is audited."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        manager = BackupManager(BackupConfig(directory=blocker / "sub"))

        with pytest.raises(BackupError) as exc_info:
            manager.backup(ConfigFileState.scan("a = 1\n", KEY_TABLE))

        assert exc_info.value.exit_code == 12
        mock_audit.log_failure.assert_called_once()


class TestListAndRestore:
    """Tests for listing and restoring backups."""

    def test_list_sorted_oldest_first(self, manager, mock_audit):
        state = ConfigFileState.scan("a = 1\n", KEY_TABLE)
        newer = manager.backup(state, now=datetime(2024, 5, 1, 12, 0))
        older = manager.backup(state, now=datetime(2023, 5, 1, 12, 0))
        (manager.directory / "conftune.backupjunk").write_text("")
        (manager.directory / "unrelated").write_text("")

        backups = manager.list_backups()

        assert [b.path for b in backups] == [older, newer]
        assert backups[0].created == datetime(2023, 5, 1, 12, 0)

    def test_list_missing_directory(self, tmp_path):
        manager = BackupManager(BackupConfig(directory=tmp_path / "nope"))
        assert manager.list_backups() == []

    def test_restore_overwrites(self, manager, mock_audit, tmp_path):
        backup = manager.backup(ConfigFileState.scan("a = 1\n", KEY_TABLE), now=datetime(2024, 1, 1))
        conf = tmp_path / "postgresql.conf"
        conf.write_text("a = 2\nb = 3\nc = 4\n")

        manager.restore(backup, conf)

        assert conf.read_text() == "a = 1\n"
        assert mock_audit.log_success.call_args[0][0] == AuditEventType.CONFIG_RESTORE

    def test_restore_missing_backup(self, manager, tmp_path):
        with pytest.raises(BackupError):
            manager.restore(tmp_path / "missing", tmp_path / "postgresql.conf")
