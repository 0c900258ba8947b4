"""Unit conversion between PostgreSQL value strings and numbers.

Provides:
- Byte counts <-> canonical strings ("2GB", "64kB")
- Human-readable decimal display ("8.00 GB")
- Durations <-> canonical strings ("100ms", "15min") via a unit-pair ratio table

Canonical strings are what PostgreSQL accepts in postgresql.conf: an integer
magnitude directly followed by a unit suffix, never a fraction.
"""

import math
import re
from enum import Enum

from conftune.core.exceptions import FormatError


# Byte equivalents (using 1024) of common byte measurements
KILOBYTE = 1 << 10
MEGABYTE = 1 << 20
GIGABYTE = 1 << 30
TERABYTE = 1 << 40

# Suffixes for byte measurements that are valid to PostgreSQL
KB = "kB"
MB = "MB"
GB = "GB"
TB = "TB"
B = "B"  # display only, never a valid input suffix

MAX_BYTES = (1 << 64) - 1

# Largest first; each unit's successor is the next smaller unit
_BYTE_UNITS = (
    (TERABYTE, TB),
    (GIGABYTE, GB),
    (MEGABYTE, MB),
    (KILOBYTE, KB),
)
_NEXT_SMALLER_BYTES = {TB: GB, GB: MB, MB: KB}
_BYTE_MULTIPLIERS = {suffix: size for size, suffix in _BYTE_UNITS}

# Anything below this fraction of a unit does not change the value at 1024x
_FRACTION_EPSILON = 0.001

_BYTES_PATTERN = re.compile(r"([0-9]+)(kB|MB|GB|TB)")
_TIME_PATTERN = re.compile(r"([0-9]+)(us|ms|s|min|h|d)?")


def _strip_quotes(value: str) -> str:
    """Remove one pair of surrounding single quotes, as PostgreSQL allows."""
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value[1:-1]
    return value


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero."""
    return int(math.floor(value + 0.5))


def _scale_bytes(num_bytes: int) -> tuple[float, str]:
    if num_bytes <= 0:
        raise FormatError(
            f"bytes must be at least 1 byte (got {num_bytes})",
            value=str(num_bytes),
        )
    for divisor, suffix in _BYTE_UNITS:
        if num_bytes >= divisor:
            return num_bytes / divisor, suffix
    return float(num_bytes), B


def bytes_to_decimal(num_bytes: int) -> str:
    """Format bytes with two decimal places for display, e.g. "8.00 GB"."""
    val, suffix = _scale_bytes(num_bytes)
    return f"{val:0.2f} {suffix}"


def bytes_to_canonical(num_bytes: int) -> str:
    """Convert a byte count to a PostgreSQL byte string, e.g. 1024 -> "1kB".

    Nothing below 1kB is emitted. A value with a meaningful fractional part
    is expressed in the next smaller unit so the magnitude stays an integer.

    Raises:
        FormatError: If num_bytes is less than 1
    """
    val, suffix = _scale_bytes(num_bytes)
    if suffix == B:
        return f"1{KB}"
    if suffix == KB:
        return f"{round_half_up(val)}{KB}"
    if val - int(val) > _FRACTION_EPSILON:
        val *= 1024
        suffix = _NEXT_SMALLER_BYTES[suffix]
    return f"{int(val)}{suffix}"


def canonical_to_bytes(value: str) -> int:
    """Parse a PostgreSQL byte string such as "10GB" or "20kB" into bytes.

    Raises:
        FormatError: On whitespace, signs, fractions, a missing or unknown
            suffix, or a result beyond the unsigned 64-bit range
    """
    match = _BYTES_PATTERN.fullmatch(_strip_quotes(value))
    if match is None:
        raise FormatError(f"incorrect PostgreSQL bytes format: '{value}'", value=value)

    result = int(match.group(1)) * _BYTE_MULTIPLIERS[match.group(2)]
    if result > MAX_BYTES:
        raise FormatError(f"could not parse bytes number: '{value}' overflows", value=value)
    return result


class TimeUnit(Enum):
    """Valid suffixes for time measurements used by PostgreSQL settings."""

    MICROSECONDS = "us"
    MILLISECONDS = "ms"
    SECONDS = "s"
    MINUTES = "min"
    HOURS = "h"
    DAYS = "d"

    @classmethod
    def parse(cls, value: str) -> "TimeUnit":
        """Look up a unit by its suffix (case-insensitive)."""
        try:
            return cls(value.lower())
        except ValueError:
            raise FormatError(f"unrecognized time units: {value}", value=value) from None


# Smallest first
_TIME_ORDER = (
    TimeUnit.MICROSECONDS,
    TimeUnit.MILLISECONDS,
    TimeUnit.SECONDS,
    TimeUnit.MINUTES,
    TimeUnit.HOURS,
    TimeUnit.DAYS,
)

# How many of the smaller unit make one of the larger, for adjacent pairs
_ADJACENT_RATIOS = {
    (TimeUnit.MILLISECONDS, TimeUnit.MICROSECONDS): 1000,
    (TimeUnit.SECONDS, TimeUnit.MILLISECONDS): 1000,
    (TimeUnit.MINUTES, TimeUnit.SECONDS): 60,
    (TimeUnit.HOURS, TimeUnit.MINUTES): 60,
    (TimeUnit.DAYS, TimeUnit.HOURS): 24,
}


def _ratio_down(from_units: TimeUnit, to_units: TimeUnit) -> int:
    """Integer ratio from a unit to a smaller (or equal) one."""
    hi = _TIME_ORDER.index(from_units)
    lo = _TIME_ORDER.index(to_units)
    ratio = 1
    for i in range(hi, lo, -1):
        ratio *= _ADJACENT_RATIOS[(_TIME_ORDER[i], _TIME_ORDER[i - 1])]
    return ratio


def time_conversion(from_units: TimeUnit, to_units: TimeUnit) -> float:
    """Factor to multiply a value in from_units by to get to_units.

    time_conversion(MINUTES, MILLISECONDS) == 60000.0
    """
    if _TIME_ORDER.index(from_units) >= _TIME_ORDER.index(to_units):
        return float(_ratio_down(from_units, to_units))
    return 1.0 / _ratio_down(to_units, from_units)


def canonical_to_duration(value: str, default_units: TimeUnit) -> tuple[int, TimeUnit]:
    """Parse a PostgreSQL time string such as "100ms" or "15min".

    A bare integer is interpreted in default_units, as PostgreSQL does for
    the setting in question.

    Raises:
        FormatError: On whitespace, signs, fractions or unknown units
    """
    match = _TIME_PATTERN.fullmatch(_strip_quotes(value))
    if match is None:
        raise FormatError(f"incorrect PostgreSQL time format: '{value}'", value=value)

    units = TimeUnit.parse(match.group(2)) if match.group(2) else default_units
    return int(match.group(1)), units


def duration_to_canonical(value: int, units: TimeUnit) -> str:
    """Render a duration in the largest unit that keeps an integer magnitude.

    duration_to_canonical(900, SECONDS) == "15min"
    """
    if value < 0:
        raise FormatError(f"durations cannot be negative (got {value})", value=str(value))
    if value == 0:
        return f"0{units.value}"

    total_us = value * _ratio_down(units, TimeUnit.MICROSECONDS)
    for candidate in reversed(_TIME_ORDER):
        ratio = _ratio_down(candidate, TimeUnit.MICROSECONDS)
        if total_us % ratio == 0:
            return f"{total_us // ratio}{candidate.value}"
    return f"{total_us}{TimeUnit.MICROSECONDS.value}"


def duration_to_unit(value: str, default_units: TimeUnit, target_units: TimeUnit) -> float:
    """Parse a time string and express it in target_units."""
    amount, units = canonical_to_duration(value, default_units)
    return amount * time_conversion(units, target_units)
