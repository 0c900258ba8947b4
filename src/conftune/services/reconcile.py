"""Decide, per key, whether the file's value needs to be shown for tuning.

A key is shown when it is missing from the file, commented out, unparsable,
or further than FUDGE_FACTOR away from the recommendation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from conftune.core.exceptions import FormatError, UnsupportedKeyError
from conftune.services.conffile import ConfigFileState, KeyTable, ParsedLine
from conftune.services.recommend import (
    NO_RECOMMENDATION,
    KeySpec,
    Recommender,
    SettingsGroup,
    ValueKind,
    parse_for_spec,
)
from conftune.services.recommend.parsers import strip_quotes


# Relative difference tolerated between the current and recommended value
FUDGE_FACTOR = 0.05


def is_close_enough(actual: float, target: float, fudge: float = FUDGE_FACTOR) -> bool:
    """Whether actual is within fudge (relative) of target.

    A zero target only accepts an actual of exactly zero.
    """
    if target == 0:
        return actual == 0
    return abs((target - actual) / target) <= fudge


class Reason(Enum):
    """Why a key was (or was not) shown."""

    MISSING = "missing"
    COMMENTED = "commented"
    OUT_OF_TOLERANCE = "out_of_tolerance"
    UNPARSABLE = "unparsable"
    WITHIN_TOLERANCE = "within_tolerance"


@dataclass(frozen=True)
class Decision:
    """Outcome for one key of a group."""

    key: str
    visible: bool
    reason: Reason
    recommended: str
    current: Optional[ParsedLine] = None

    @property
    def line(self) -> str:
        """Recommended line without trailing comment."""
        return f"{self.key} = {self.recommended}"


@dataclass
class GroupDecisions:
    """Decisions for one settings group, in the group's key order."""

    label: str
    decisions: list[Decision] = field(default_factory=list)

    @property
    def visible(self) -> list[Decision]:
        return [d for d in self.decisions if d.visible]

    @property
    def is_tuned(self) -> bool:
        return not self.visible


def _values_match(spec: KeySpec, current: str, recommended: str) -> bool:
    """Compare a file value with a recommendation.

    Raises:
        FormatError: If the current value does not parse
        UnsupportedKeyError: If the recommendation does not parse
    """
    if spec.kind == ValueKind.ENUM:
        return strip_quotes(current).lower() == strip_quotes(recommended).lower()

    actual = parse_for_spec(spec, current)
    try:
        target = parse_for_spec(spec, recommended)
    except FormatError as e:
        raise UnsupportedKeyError(
            f"unexpected parsing problem with recommendation for {spec.name}: {e}",
            key=spec.name,
        ) from e
    return is_close_enough(actual, target)


def decide_key(
    spec: KeySpec,
    recommended: str,
    state: ConfigFileState,
    key_table: KeyTable,
) -> Decision:
    """Decide whether one key needs to be shown.

    Raises:
        UnsupportedKeyError: If the file was not scanned for this key
    """
    if spec.name not in key_table:
        raise UnsupportedKeyError(f"{spec.name} is not in the key table", key=spec.name)
    parsed = state.parsed.get(spec.name)
    if parsed is None:
        return Decision(spec.name, True, Reason.MISSING, recommended)

    try:
        close = _values_match(spec, parsed.value, recommended)
    except FormatError:
        return Decision(spec.name, True, Reason.UNPARSABLE, recommended, parsed)

    if parsed.commented:
        return Decision(spec.name, True, Reason.COMMENTED, recommended, parsed)
    if not close:
        return Decision(spec.name, True, Reason.OUT_OF_TOLERANCE, recommended, parsed)
    return Decision(spec.name, False, Reason.WITHIN_TOLERANCE, recommended, parsed)


def decide_group(
    group: SettingsGroup,
    recommender: Recommender,
    state: ConfigFileState,
    key_table: KeyTable,
) -> GroupDecisions:
    """Decide every key of a group against the scanned file.

    Keys the recommender has nothing to say about are left out entirely.
    """
    result = GroupDecisions(label=group.label)
    for spec in group.specs:
        recommended = recommender.recommend(spec.name)
        if recommended == NO_RECOMMENDATION:
            continue
        result.decisions.append(decide_key(spec, recommended, state, key_table))
    return result
