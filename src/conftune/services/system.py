"""Host detection: memory, CPUs, PostgreSQL version and postgresql.conf location."""

import os
import subprocess
from pathlib import Path
from typing import Optional

from conftune.core.exceptions import ConfigurationError, FormatError, ValidationError
from conftune.services.snapshot import (
    PLATFORM_DARWIN,
    PLATFORM_LINUX,
    SUPPORTED_PG_VERSIONS,
    to_pg_major_version,
    validate_pg_major_version,
)
from conftune.services.units import KILOBYTE, canonical_to_bytes


CONF_FILENAME = "postgresql.conf"
PG_CONFIG_FILENAME = "pg_config"

CONF_PATH_MAC = "/usr/local/var/postgres/postgresql.conf"
CONF_PATH_DEBIAN_FMT = "/etc/postgresql/{version}/main/postgresql.conf"
CONF_PATH_RPM_FMT = "/var/lib/pgsql/{version}/data/postgresql.conf"
CONF_PATH_ARCH = "/var/lib/postgres/data/postgresql.conf"

# Used when /proc/meminfo is unreadable
DEFAULT_MEMORY_BYTES = 4 * 1024 * 1024 * KILOBYTE
DEFAULT_CPU_COUNT = 4


def get_total_memory() -> int:
    """Total system memory in bytes, from /proc/meminfo."""
    try:
        with open("/proc/meminfo") as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    # Format: "MemTotal:     16384000 kB"
                    return int(line.split()[1]) * KILOBYTE
    except (OSError, ValueError, IndexError):
        pass
    return DEFAULT_MEMORY_BYTES


def get_cpu_count() -> int:
    count = os.cpu_count()
    return count if count and count > 0 else DEFAULT_CPU_COUNT


def parse_size_flag(value: str, flag: str) -> int:
    """Parse a size given on the command line, e.g. --memory 8GB.

    Raises:
        ValidationError: If the value is not <int><kB|MB|GB|TB>
    """
    try:
        return canonical_to_bytes(value)
    except FormatError as e:
        raise ValidationError(
            f"invalid {flag} value: {value}",
            hint="Use PostgreSQL format <int value><units>, e.g. 4GB",
        ) from e


def resolve_file_path(path: Path, default_filename: str) -> Path:
    """If path is a directory, point at default_filename inside it."""
    if path.is_dir():
        return path / default_filename
    return path


def get_pg_config_version(pg_config: str = PG_CONFIG_FILENAME) -> str:
    """Run `pg_config --version` and return its output.

    Raises:
        ConfigurationError: If pg_config cannot be run
    """
    binary = str(resolve_file_path(Path(pg_config), PG_CONFIG_FILENAME))
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ConfigurationError(
            f"could not execute `{binary} --version`",
            details=[str(e)],
            hint="Pass --pg-version or --pg-config explicitly",
        ) from e
    if result.returncode != 0:
        raise ConfigurationError(
            f"`{binary} --version` failed",
            details=[result.stderr.strip()],
            hint="Pass --pg-version or --pg-config explicitly",
        )
    return result.stdout.strip()


def detect_pg_major_version(pg_config: str = PG_CONFIG_FILENAME) -> str:
    """Major version of the installed PostgreSQL, via pg_config.

    Raises:
        ConfigurationError: If pg_config cannot be run
        ValidationError: If the version is unknown or unsupported
    """
    return validate_pg_major_version(to_pg_major_version(get_pg_config_version(pg_config)))


def candidate_conf_paths(platform: str, pg_version: Optional[str] = None) -> list[Path]:
    """Well-known postgresql.conf locations, most specific first."""
    if platform == PLATFORM_DARWIN:
        return [Path(CONF_PATH_MAC)]
    if platform != PLATFORM_LINUX:
        return []

    versions = [pg_version] if pg_version else list(SUPPORTED_PG_VERSIONS)
    paths = [Path(CONF_PATH_DEBIAN_FMT.format(version=v)) for v in versions]
    paths += [Path(CONF_PATH_RPM_FMT.format(version=v)) for v in versions]
    paths.append(Path(CONF_PATH_ARCH))
    return paths


def find_conf_file(platform: str, pg_version: Optional[str] = None) -> Path:
    """Find postgresql.conf using path heuristics.

    Raises:
        ConfigurationError: If no candidate exists
    """
    tried = candidate_conf_paths(platform, pg_version)
    for path in tried:
        if path.is_file():
            return path
    raise ConfigurationError(
        "could not find postgresql.conf at any of these locations",
        details=[str(p) for p in tried],
        hint="Pass the correct path with --conf-path",
    )
