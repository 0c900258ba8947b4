"""Resource snapshot and tuning profiles.

The snapshot is the single immutable input that drives every recommendation
for a run: host memory and CPUs, operator overrides, the PostgreSQL major
version and the selected profile.
"""

import re
import sys
from dataclasses import dataclass, field
from enum import Enum

from conftune.core.exceptions import ValidationError


class Profile(Enum):
    """Named variants of recommendation behavior."""

    DEFAULT = "default"
    PROMSCALE = "promscale"

    @property
    def description(self) -> str:
        """Human-readable description of the profile."""
        descriptions = {
            "default": "General purpose time-series workload",
            "promscale": "Promscale metric ingest (large buffers, aggressive background writer)",
        }
        return descriptions[self.value]


# Major versions this tool can make recommendations for, newest first
SUPPORTED_PG_VERSIONS = ("17", "16", "15", "14", "13", "12", "11", "10", "9.6")

MAX_BACKGROUND_WORKERS_DEFAULT = 16

PLATFORM_LINUX = "linux"
PLATFORM_DARWIN = "darwin"
PLATFORM_WINDOWS = "windows"

_PG_VERSION_PATTERN = re.compile(r"^PostgreSQL ([0-9]+?)\.([0-9]+?).*")


def current_platform() -> str:
    """Normalize sys.platform to linux, darwin or windows."""
    if sys.platform.startswith("win"):
        return PLATFORM_WINDOWS
    if sys.platform == "darwin":
        return PLATFORM_DARWIN
    return PLATFORM_LINUX


def to_pg_major_version(version_output: str) -> str:
    """Extract the major version from `pg_config --version` output.

    Before 10 the major version is X.Y ("PostgreSQL 9.6.4" -> "9.6");
    from 10 on it is just X ("PostgreSQL 10.3" -> "10").

    Raises:
        ValidationError: If the string cannot be parsed
    """
    match = _PG_VERSION_PATTERN.match(version_output.strip())
    if match is None:
        raise ValidationError(f"unable to parse PG version string: {version_output.strip()}")
    major, minor = match.group(1), match.group(2)
    if major in ("7", "8", "9"):
        return f"{major}.{minor}"
    return major


def validate_pg_major_version(version: str) -> str:
    """Check that a major version is one this tool knows how to handle."""
    if version not in SUPPORTED_PG_VERSIONS:
        raise ValidationError(
            f"unsupported PostgreSQL major version: {version}",
            hint=f"Valid values: {', '.join(SUPPORTED_PG_VERSIONS)}",
        )
    return version


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


def version_at_least(version: str, floor: str) -> bool:
    """Compare major versions numerically ("9.6" < "10" < "13")."""
    return _version_tuple(version) >= _version_tuple(floor)


@dataclass(frozen=True)
class ResourceSnapshot:
    """Immutable resource/profile input for one tuning run.

    Attributes:
        total_memory: Memory to base recommendations on, in bytes
        cpus: Logical CPU count
        pg_major_version: PostgreSQL major version, e.g. "16" or "9.6"
        max_connections: Operator override; 0 means pick from memory
        wal_disk_size: Size of the WAL disk in bytes; 0 means unknown
        max_background_workers: TimescaleDB background worker budget
        profile: Recommendation profile
        platform: linux, darwin or windows
    """

    total_memory: int
    cpus: int
    pg_major_version: str = SUPPORTED_PG_VERSIONS[0]
    max_connections: int = 0
    wal_disk_size: int = 0
    max_background_workers: int = MAX_BACKGROUND_WORKERS_DEFAULT
    profile: Profile = Profile.DEFAULT
    platform: str = field(default_factory=current_platform)

    def __post_init__(self) -> None:
        if self.total_memory <= 0:
            raise ValidationError(f"memory must be positive (got {self.total_memory})")
        if self.cpus <= 0:
            raise ValidationError(f"cpus must be positive (got {self.cpus})")
        if self.max_connections < 0 or self.wal_disk_size < 0:
            raise ValidationError("max connections and WAL disk size cannot be negative")
        if self.max_background_workers < MAX_BACKGROUND_WORKERS_DEFAULT:
            raise ValidationError(
                f"cannot make recommendations with less than "
                f"{MAX_BACKGROUND_WORKERS_DEFAULT} background workers",
            )
        validate_pg_major_version(self.pg_major_version)

    @property
    def is_windows(self) -> bool:
        return self.platform == PLATFORM_WINDOWS
