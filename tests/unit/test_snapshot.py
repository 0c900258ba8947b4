"""Unit tests for the resource snapshot and version handling."""

import pytest

from conftune.core.exceptions import ValidationError
from conftune.services.snapshot import (
    PLATFORM_LINUX,
    PLATFORM_WINDOWS,
    Profile,
    ResourceSnapshot,
    to_pg_major_version,
    validate_pg_major_version,
    version_at_least,
)
from conftune.services.units import GIGABYTE


class TestPGVersion:
    """Tests for PostgreSQL version parsing."""

    @pytest.mark.parametrize("output,expected", [
        ("PostgreSQL 16.2", "16"),
        ("PostgreSQL 10.3 (Ubuntu 10.3-1)", "10"),
        ("PostgreSQL 9.6.4", "9.6"),
        ("PostgreSQL 8.4.22\n", "8.4"),
    ])
    def test_to_major_version(self, output, expected):
        """Before 10 the major version is X.Y, afterwards just X."""
        assert to_pg_major_version(output) == expected

    @pytest.mark.parametrize("output", ["Postgres 16.2", "PostgreSQL 16", "16.2", ""])
    def test_unparsable(self, output):
        with pytest.raises(ValidationError):
            to_pg_major_version(output)

    def test_validate_supported(self):
        assert validate_pg_major_version("9.6") == "9.6"
        assert validate_pg_major_version("17") == "17"

    def test_validate_unsupported(self):
        """Old releases are rejected with the list of valid values as hint."""
        with pytest.raises(ValidationError) as exc_info:
            validate_pg_major_version("8.4")
        assert "9.6" in exc_info.value.hint

    def test_version_comparison_is_numeric(self):
        assert version_at_least("10", "9.6")
        assert version_at_least("13", "13")
        assert not version_at_least("9.6", "10")
        assert not version_at_least("12", "13")


class TestResourceSnapshot:
    """Tests for ResourceSnapshot validation."""

    def test_defaults(self):
        snapshot = ResourceSnapshot(total_memory=8 * GIGABYTE, cpus=4, platform=PLATFORM_LINUX)
        assert snapshot.profile == Profile.DEFAULT
        assert snapshot.max_background_workers == 16
        assert snapshot.max_connections == 0
        assert not snapshot.is_windows

    def test_windows(self):
        snapshot = ResourceSnapshot(total_memory=GIGABYTE, cpus=1, platform=PLATFORM_WINDOWS)
        assert snapshot.is_windows

    def test_is_immutable(self):
        snapshot = ResourceSnapshot(total_memory=GIGABYTE, cpus=1)
        with pytest.raises(AttributeError):
            snapshot.cpus = 2

    @pytest.mark.parametrize("kwargs", [
        {"total_memory": 0, "cpus": 1},
        {"total_memory": GIGABYTE, "cpus": 0},
        {"total_memory": GIGABYTE, "cpus": 1, "max_connections": -1},
        {"total_memory": GIGABYTE, "cpus": 1, "wal_disk_size": -1},
        {"total_memory": GIGABYTE, "cpus": 1, "max_background_workers": 8},
        {"total_memory": GIGABYTE, "cpus": 1, "pg_major_version": "8.4"},
    ])
    def test_invalid(self, kwargs):
        """Out of range values fail fast with a ValidationError."""
        with pytest.raises(ValidationError):
            ResourceSnapshot(**kwargs)

    def test_profile_description(self):
        assert "Promscale" in Profile.PROMSCALE.description
