"""Turn setting value strings into numbers so they can be compared.

Each ValueKind maps to a parser producing a float. Time values are
expressed in milliseconds so that "1s" and "1000ms" compare equal.
"""

import math
from typing import Optional

from conftune.core.exceptions import FormatError
from conftune.services.recommend.base import KeySpec, ValueKind
from conftune.services.units import (
    TimeUnit,
    canonical_to_bytes,
    duration_to_unit,
)


_BOOL_VALUES = {
    "on": 1.0,
    "true": 1.0,
    "yes": 1.0,
    "1": 1.0,
    "off": 0.0,
    "false": 0.0,
    "no": 0.0,
    "0": 0.0,
}


def strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value[1:-1]
    return value


def parse_numeric(value: str) -> float:
    try:
        result = float(strip_quotes(value))
    except ValueError:
        raise FormatError(f"invalid number: '{value}'", value=value) from None
    if math.isnan(result) or math.isinf(result):
        raise FormatError(f"invalid number: '{value}'", value=value)
    return result


def parse_bool(value: str) -> float:
    try:
        return _BOOL_VALUES[strip_quotes(value).lower()]
    except KeyError:
        raise FormatError(f"invalid boolean: '{value}'", value=value) from None


def parse_value(kind: ValueKind, value: str, time_unit: Optional[TimeUnit] = None) -> float:
    """Parse a raw setting value according to its kind.

    Args:
        kind: How to interpret the value
        value: Raw value as found in the file or produced by a recommender
        time_unit: Unit of a bare integer, for TIME values

    Raises:
        FormatError: If the value does not parse as kind
    """
    if kind == ValueKind.BYTES:
        return float(canonical_to_bytes(value))
    if kind == ValueKind.NUMERIC:
        return parse_numeric(value)
    if kind == ValueKind.BOOL:
        return parse_bool(value)
    if kind == ValueKind.TIME:
        return duration_to_unit(value, time_unit or TimeUnit.MILLISECONDS, TimeUnit.MILLISECONDS)
    raise FormatError(f"values of kind {kind.value} are not numeric", value=value)


def parse_for_spec(spec: KeySpec, value: str) -> float:
    """Parse value with the kind and time unit declared for its key."""
    return parse_value(spec.kind, value, spec.time_unit)
