"""Settings that do not belong to any other group."""

from conftune.services.recommend.base import NO_RECOMMENDATION, KeySpec, Recommender, ValueKind
from conftune.services.recommend.memory import tiered_max_connections
from conftune.services.snapshot import ResourceSnapshot, version_at_least
from conftune.services.units import GIGABYTE, TimeUnit


MISC_LABEL = "miscellaneous"

DEFAULT_STATISTICS_TARGET = "default_statistics_target"
RANDOM_PAGE_COST = "random_page_cost"
CHECKPOINT_COMPLETION_TARGET = "checkpoint_completion_target"
MAX_CONNECTIONS = "max_connections"
MAX_LOCKS_PER_TRANSACTION = "max_locks_per_transaction"
AUTOVACUUM_MAX_WORKERS = "autovacuum_max_workers"
AUTOVACUUM_NAPTIME = "autovacuum_naptime"
EFFECTIVE_IO_CONCURRENCY = "effective_io_concurrency"  # linux only
DEFAULT_TOAST_COMPRESSION = "default_toast_compression"  # PostgreSQL 14+
JIT = "jit"  # PostgreSQL 12+

MISC_SPECS = (
    KeySpec(DEFAULT_STATISTICS_TARGET, ValueKind.NUMERIC),
    KeySpec(RANDOM_PAGE_COST, ValueKind.NUMERIC),
    KeySpec(CHECKPOINT_COMPLETION_TARGET, ValueKind.NUMERIC),
    KeySpec(MAX_CONNECTIONS, ValueKind.NUMERIC),
    KeySpec(MAX_LOCKS_PER_TRANSACTION, ValueKind.NUMERIC),
    KeySpec(AUTOVACUUM_MAX_WORKERS, ValueKind.NUMERIC),
    KeySpec(AUTOVACUUM_NAPTIME, ValueKind.TIME, TimeUnit.SECONDS),
    KeySpec(EFFECTIVE_IO_CONCURRENCY, ValueKind.NUMERIC),
    KeySpec(DEFAULT_TOAST_COMPRESSION, ValueKind.ENUM),
    KeySpec(JIT, ValueKind.BOOL),
)

FIXED_VALUES = {
    DEFAULT_STATISTICS_TARGET: "500",
    RANDOM_PAGE_COST: "1.1",
    CHECKPOINT_COMPLETION_TARGET: "0.9",
    AUTOVACUUM_MAX_WORKERS: "10",
    AUTOVACUUM_NAPTIME: "10",
}

# (memory below, locks); hypertables with many chunks need many locks
MAX_LOCKS_TIERS = (
    (8 * GIGABYTE, 64),
    (16 * GIGABYTE, 128),
    (32 * GIGABYTE, 256),
)
MAX_LOCKS_TOP = 512

EFFECTIVE_IO_OLD_VERSIONS = "200"
EFFECTIVE_IO_DEFAULT = "256"


def effective_io_concurrency(pg_major_version: str) -> str:
    """The unit of effective_io_concurrency changed in PostgreSQL 13."""
    if version_at_least(pg_major_version, "13"):
        return EFFECTIVE_IO_DEFAULT
    return EFFECTIVE_IO_OLD_VERSIONS


class MiscRecommender(Recommender):
    """Recommends the remaining settings, mostly fixed or version gated."""

    label = MISC_LABEL
    specs = MISC_SPECS

    def __init__(self, snapshot: ResourceSnapshot) -> None:
        self.snapshot = snapshot

    def _recommend(self, key: str) -> str:
        if key in FIXED_VALUES:
            return FIXED_VALUES[key]

        version = self.snapshot.pg_major_version
        if key == MAX_CONNECTIONS:
            conns = self.snapshot.max_connections or tiered_max_connections(
                self.snapshot.total_memory
            )
            return str(conns)
        if key == MAX_LOCKS_PER_TRANSACTION:
            for below, locks in MAX_LOCKS_TIERS:
                if self.snapshot.total_memory < below:
                    return str(locks)
            return str(MAX_LOCKS_TOP)
        if key == EFFECTIVE_IO_CONCURRENCY:
            return effective_io_concurrency(version)
        if key == DEFAULT_TOAST_COMPRESSION:
            return "lz4" if version_at_least(version, "14") else NO_RECOMMENDATION
        return "off" if version_at_least(version, "12") else NO_RECOMMENDATION
