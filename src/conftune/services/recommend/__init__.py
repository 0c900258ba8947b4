"""Recommendations for groups of postgresql.conf settings.

Heuristics follow the pgtune tool, adjusted for TimescaleDB workloads.
"""

from conftune.services.recommend.base import (
    NO_RECOMMENDATION,
    KeySpec,
    NullRecommender,
    Recommender,
    ValueKind,
)
from conftune.services.recommend.groups import (
    ALL_KEYS,
    GROUP_LABELS,
    SettingsGroup,
    build_settings_groups,
    get_settings_group,
)
from conftune.services.recommend.parsers import parse_for_spec, parse_value

__all__ = [
    "ALL_KEYS",
    "NO_RECOMMENDATION",
    "GROUP_LABELS",
    "KeySpec",
    "NullRecommender",
    "Recommender",
    "SettingsGroup",
    "ValueKind",
    "build_settings_groups",
    "get_settings_group",
    "parse_for_spec",
    "parse_value",
]
