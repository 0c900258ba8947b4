"""Settings groups: labelled key sets processed together with one recommender."""

from dataclasses import dataclass
from typing import Callable

from conftune.core.exceptions import UnsupportedKeyError
from conftune.services.recommend.base import KeySpec, NullRecommender, Recommender
from conftune.services.recommend.bgwriter import (
    BGWRITER_LABEL,
    BGWRITER_SPECS,
    PromscaleBgwriterRecommender,
)
from conftune.services.recommend.memory import MEMORY_LABEL, MEMORY_SPECS, MemoryRecommender
from conftune.services.recommend.misc import (
    EFFECTIVE_IO_CONCURRENCY,
    MISC_LABEL,
    MISC_SPECS,
    MiscRecommender,
)
from conftune.services.recommend.parallel import (
    MAX_PARALLEL_WORKERS,
    PARALLEL_LABEL,
    PARALLEL_SPECS,
    ParallelRecommender,
)
from conftune.services.recommend.wal import WAL_LABEL, WAL_SPECS, WALRecommender
from conftune.services.snapshot import (
    PLATFORM_DARWIN,
    PLATFORM_WINDOWS,
    Profile,
    ResourceSnapshot,
    version_at_least,
)


# Processing order
GROUP_LABELS = (MEMORY_LABEL, PARALLEL_LABEL, WAL_LABEL, BGWRITER_LABEL, MISC_LABEL)

# Every key any group may tune, regardless of version or platform
ALL_KEYS = tuple(
    spec.name
    for specs in (MEMORY_SPECS, PARALLEL_SPECS, WAL_SPECS, BGWRITER_SPECS, MISC_SPECS)
    for spec in specs
)


@dataclass(frozen=True)
class SettingsGroup:
    """A label, the keys tuned under it, and how to build its recommender.

    The label reads naturally followed by "settings", e.g. "memory settings".
    """

    label: str
    specs: tuple[KeySpec, ...]
    recommender_factory: Callable[[ResourceSnapshot], Recommender]

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.specs)

    def recommender(self, snapshot: ResourceSnapshot) -> Recommender:
        return self.recommender_factory(snapshot)


def _bgwriter_recommender(snapshot: ResourceSnapshot) -> Recommender:
    if snapshot.profile == Profile.PROMSCALE:
        return PromscaleBgwriterRecommender()
    return NullRecommender(BGWRITER_LABEL, BGWRITER_SPECS)


def _parallel_specs(snapshot: ResourceSnapshot) -> tuple[KeySpec, ...]:
    if version_at_least(snapshot.pg_major_version, "10"):
        return PARALLEL_SPECS
    return tuple(s for s in PARALLEL_SPECS if s.name != MAX_PARALLEL_WORKERS)


def _misc_specs(snapshot: ResourceSnapshot) -> tuple[KeySpec, ...]:
    if snapshot.platform in (PLATFORM_WINDOWS, PLATFORM_DARWIN):
        return tuple(s for s in MISC_SPECS if s.name != EFFECTIVE_IO_CONCURRENCY)
    return MISC_SPECS


def get_settings_group(label: str, snapshot: ResourceSnapshot) -> SettingsGroup:
    """Return the group for label with keys gated by version and platform.

    Raises:
        UnsupportedKeyError: If label names no group
    """
    if label == MEMORY_LABEL:
        return SettingsGroup(label, MEMORY_SPECS, MemoryRecommender)
    if label == PARALLEL_LABEL:
        return SettingsGroup(label, _parallel_specs(snapshot), ParallelRecommender)
    if label == WAL_LABEL:
        return SettingsGroup(label, WAL_SPECS, WALRecommender)
    if label == BGWRITER_LABEL:
        return SettingsGroup(label, BGWRITER_SPECS, _bgwriter_recommender)
    if label == MISC_LABEL:
        return SettingsGroup(label, _misc_specs(snapshot), MiscRecommender)
    raise UnsupportedKeyError(f"unknown label: {label}", group=label)


def build_settings_groups(snapshot: ResourceSnapshot) -> list[SettingsGroup]:
    """All groups, in processing order."""
    return [get_settings_group(label, snapshot) for label in GROUP_LABELS]
