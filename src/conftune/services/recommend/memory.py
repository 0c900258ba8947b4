"""Memory settings: shared buffers, caches and per-operation work memory."""

from conftune.services.recommend.base import KeySpec, Recommender, ValueKind
from conftune.services.snapshot import Profile, ResourceSnapshot
from conftune.services.units import (
    GIGABYTE,
    KILOBYTE,
    MEGABYTE,
    bytes_to_canonical,
    round_half_up,
)


MEMORY_LABEL = "memory"

SHARED_BUFFERS = "shared_buffers"
EFFECTIVE_CACHE_SIZE = "effective_cache_size"
MAINTENANCE_WORK_MEM = "maintenance_work_mem"
WORK_MEM = "work_mem"

MEMORY_SPECS = (
    KeySpec(SHARED_BUFFERS, ValueKind.BYTES),
    KeySpec(EFFECTIVE_CACHE_SIZE, ValueKind.BYTES),
    KeySpec(MAINTENANCE_WORK_MEM, ValueKind.BYTES),
    KeySpec(WORK_MEM, ValueKind.BYTES),
)

# Windows cannot make use of large shared buffers
SHARED_BUFFERS_WINDOWS = 512 * MEGABYTE

# maintenance_work_mem grows with memory up to a cap; Windows rejects 2GB
MAINTENANCE_PER_GB = 128 * MEGABYTE
MAINTENANCE_MAX = 2 * GIGABYTE
MAINTENANCE_MAX_WINDOWS = 2047 * MEGABYTE

# work_mem per GB of memory, before dividing by the CPU factor
WORK_MEM_PER_GB = 6.4 * MEGABYTE
# pgtune's Windows curve: steeper slope above 2GB
WORK_MEM_PER_GB_WINDOWS = 8.53336 * MEGABYTE
WORK_MEM_WINDOWS_KNEE = 2 * GIGABYTE
WORK_MEM_MIN = 64 * KILOBYTE


def tiered_max_connections(total_memory: int) -> int:
    """max_connections picked from memory when the operator gives none."""
    if total_memory <= 2 * GIGABYTE:
        return 20
    if total_memory <= 4 * GIGABYTE:
        return 50
    if total_memory <= 6 * GIGABYTE:
        return 75
    return 100


class MemoryRecommender(Recommender):
    """Recommends memory settings from total memory and CPU count."""

    label = MEMORY_LABEL
    specs = MEMORY_SPECS

    def __init__(self, snapshot: ResourceSnapshot) -> None:
        self.snapshot = snapshot

    def _recommend(self, key: str) -> str:
        mem = self.snapshot.total_memory
        if key == SHARED_BUFFERS:
            if self.snapshot.is_windows:
                return bytes_to_canonical(SHARED_BUFFERS_WINDOWS)
            if self.snapshot.profile == Profile.PROMSCALE:
                return bytes_to_canonical(mem // 2)
            return bytes_to_canonical(mem // 4)
        if key == EFFECTIVE_CACHE_SIZE:
            return bytes_to_canonical(mem * 3 // 4)
        if key == MAINTENANCE_WORK_MEM:
            cap = MAINTENANCE_MAX_WINDOWS if self.snapshot.is_windows else MAINTENANCE_MAX
            temp = (mem / GIGABYTE) * MAINTENANCE_PER_GB
            return bytes_to_canonical(int(min(temp, cap)))
        return bytes_to_canonical(self._work_mem())

    def _cpu_factor(self) -> int:
        return max(round_half_up(self.snapshot.cpus / 2), 1)

    def _work_mem(self) -> int:
        mem = self.snapshot.total_memory
        mem_gb = mem / GIGABYTE
        if self.snapshot.is_windows and mem > WORK_MEM_WINDOWS_KNEE:
            base = (WORK_MEM_WINDOWS_KNEE / GIGABYTE) * WORK_MEM_PER_GB
            temp = (mem_gb - 2) * WORK_MEM_PER_GB_WINDOWS + base
        else:
            temp = mem_gb * WORK_MEM_PER_GB
        temp /= self._cpu_factor()

        # More connections than the tier assumes means less memory per query
        user_conns = self.snapshot.max_connections
        if user_conns:
            temp *= tiered_max_connections(mem) / user_conns

        return max(int(temp), WORK_MEM_MIN)
