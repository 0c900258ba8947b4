"""Recommender contract shared by every settings group."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from conftune.core.exceptions import UnsupportedKeyError
from conftune.services.units import TimeUnit


# Returned for a key that is deliberately left alone for this profile/version.
# Such keys are never shown and never written.
NO_RECOMMENDATION = ""


class ValueKind(Enum):
    """How a setting's value is parsed for comparison."""

    BYTES = "bytes"
    NUMERIC = "numeric"
    BOOL = "bool"
    TIME = "time"
    # Compared as an exact string, e.g. default_toast_compression
    ENUM = "enum"


@dataclass(frozen=True)
class KeySpec:
    """A tunable key together with how its value is parsed.

    Attributes:
        name: Setting name as it appears in postgresql.conf
        kind: Parsing strategy used by the decision engine
        time_unit: Unit a bare integer means, for TIME settings
    """

    name: str
    kind: ValueKind
    time_unit: Optional[TimeUnit] = None


class Recommender(ABC):
    """Produces a recommended value for each key of one settings group."""

    label: str = ""
    specs: tuple[KeySpec, ...] = ()

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.specs)

    def is_available(self) -> bool:
        """Whether recommendations can be made for these resources."""
        return True

    def spec_for(self, key: str) -> KeySpec:
        for spec in self.specs:
            if spec.name == key:
                return spec
        raise UnsupportedKeyError(
            f"unknown key: {key}",
            key=key,
            group=self.label,
        )

    def value_kind(self, key: str) -> ValueKind:
        return self.spec_for(key).kind

    def recommend(self, key: str) -> str:
        """Return the PostgreSQL formatted value for key.

        Raises:
            UnsupportedKeyError: If key does not belong to this group
        """
        self.spec_for(key)
        return self._recommend(key)

    @abstractmethod
    def _recommend(self, key: str) -> str:
        """Compute the value for a key already known to be in this group."""


class NullRecommender(Recommender):
    """Makes no recommendation for any of the given keys."""

    def __init__(self, label: str, specs: tuple[KeySpec, ...]) -> None:
        self.label = label
        self.specs = specs

    def _recommend(self, key: str) -> str:
        return NO_RECOMMENDATION
