"""Parallelism settings: worker processes and parallel query workers."""

from conftune.core.exceptions import ResourceUnavailableError
from conftune.services.recommend.base import KeySpec, Recommender, ValueKind
from conftune.services.snapshot import ResourceSnapshot
from conftune.services.units import round_half_up


PARALLEL_LABEL = "parallelism"

MAX_BACKGROUND_WORKERS = "timescaledb.max_background_workers"
MAX_WORKER_PROCESSES = "max_worker_processes"
MAX_PARALLEL_WORKERS_PER_GATHER = "max_parallel_workers_per_gather"
MAX_PARALLEL_WORKERS = "max_parallel_workers"  # PostgreSQL 10+

PARALLEL_SPECS = (
    KeySpec(MAX_BACKGROUND_WORKERS, ValueKind.NUMERIC),
    KeySpec(MAX_WORKER_PROCESSES, ValueKind.NUMERIC),
    KeySpec(MAX_PARALLEL_WORKERS_PER_GATHER, ValueKind.NUMERIC),
    KeySpec(MAX_PARALLEL_WORKERS, ValueKind.NUMERIC),
)

# At least checkpointer, WAL writer and autovacuum launcher
MIN_BUILT_IN_PROCESSES = 3


class ParallelRecommender(Recommender):
    """Recommends parallelism settings. Needs more than one CPU."""

    label = PARALLEL_LABEL
    specs = PARALLEL_SPECS

    def __init__(self, snapshot: ResourceSnapshot) -> None:
        self.snapshot = snapshot

    def is_available(self) -> bool:
        return self.snapshot.cpus > 1

    def _recommend(self, key: str) -> str:
        if not self.is_available():
            raise ResourceUnavailableError(
                "cannot make recommendations with just 1 CPU",
            )

        cpus = self.snapshot.cpus
        workers = self.snapshot.max_background_workers
        if key == MAX_WORKER_PROCESSES:
            return str(MIN_BUILT_IN_PROCESSES + workers + cpus)
        if key == MAX_PARALLEL_WORKERS:
            return str(cpus)
        if key == MAX_PARALLEL_WORKERS_PER_GATHER:
            return str(round_half_up(cpus / 2))
        return str(workers)
