"""Write-ahead log settings."""

from conftune.services.recommend.base import NO_RECOMMENDATION, KeySpec, Recommender, ValueKind
from conftune.services.snapshot import Profile, ResourceSnapshot
from conftune.services.units import (
    GIGABYTE,
    KILOBYTE,
    MEGABYTE,
    TimeUnit,
    bytes_to_canonical,
)


WAL_LABEL = "WAL"

WAL_BUFFERS = "wal_buffers"
MIN_WAL_SIZE = "min_wal_size"
MAX_WAL_SIZE = "max_wal_size"
CHECKPOINT_TIMEOUT = "checkpoint_timeout"
WAL_COMPRESSION = "wal_compression"

WAL_SPECS = (
    KeySpec(WAL_BUFFERS, ValueKind.BYTES),
    KeySpec(MIN_WAL_SIZE, ValueKind.BYTES),
    KeySpec(MAX_WAL_SIZE, ValueKind.BYTES),
    KeySpec(CHECKPOINT_TIMEOUT, ValueKind.TIME, TimeUnit.SECONDS),
    KeySpec(WAL_COMPRESSION, ValueKind.BOOL),
)

WAL_BUFFERS_THRESHOLD = 2 * GIGABYTE
WAL_BUFFERS_DEFAULT = 16 * MEGABYTE
WAL_BUFFERS_PER_GB = 7864 * KILOBYTE

DEFAULT_MAX_WAL_BYTES = 1 * GIGABYTE
PROMSCALE_MAX_WAL_BYTES = 4 * GIGABYTE
WAL_SEGMENT_BYTES = 16 * MEGABYTE
# Share of the WAL disk max_wal_size may take up
WAL_DISK_SHARE_PCT = 80

PROMSCALE_CHECKPOINT_TIMEOUT = "15min"
PROMSCALE_WAL_COMPRESSION = "on"


class WALRecommender(Recommender):
    """Recommends WAL sizing from memory and, when known, WAL disk size."""

    label = WAL_LABEL
    specs = WAL_SPECS

    def __init__(self, snapshot: ResourceSnapshot) -> None:
        self.snapshot = snapshot

    @property
    def _promscale(self) -> bool:
        return self.snapshot.profile == Profile.PROMSCALE

    def _recommend(self, key: str) -> str:
        if key == WAL_BUFFERS:
            mem = self.snapshot.total_memory
            if mem < WAL_BUFFERS_THRESHOLD:
                return bytes_to_canonical(int(mem / GIGABYTE * WAL_BUFFERS_PER_GB))
            return bytes_to_canonical(WAL_BUFFERS_DEFAULT)
        if key == MIN_WAL_SIZE:
            return bytes_to_canonical(self.max_wal_bytes() // 2)
        if key == MAX_WAL_SIZE:
            return bytes_to_canonical(self.max_wal_bytes())
        if key == CHECKPOINT_TIMEOUT:
            return PROMSCALE_CHECKPOINT_TIMEOUT if self._promscale else NO_RECOMMENDATION
        return PROMSCALE_WAL_COMPRESSION if self._promscale else NO_RECOMMENDATION

    def max_wal_bytes(self) -> int:
        disk = self.snapshot.wal_disk_size
        if disk == 0:
            return PROMSCALE_MAX_WAL_BYTES if self._promscale else DEFAULT_MAX_WAL_BYTES

        limit = disk * WAL_DISK_SHARE_PCT // 100
        # Round up to a whole WAL segment
        if limit % WAL_SEGMENT_BYTES:
            limit = (limit // WAL_SEGMENT_BYTES + 1) * WAL_SEGMENT_BYTES
        return limit
