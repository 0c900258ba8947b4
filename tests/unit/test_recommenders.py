"""Unit tests for the settings group recommenders."""

import pytest

from conftune.core.exceptions import ResourceUnavailableError, UnsupportedKeyError
from conftune.services.recommend import (
    GROUP_LABELS,
    NO_RECOMMENDATION,
    ValueKind,
    build_settings_groups,
    get_settings_group,
    parse_value,
)
from conftune.services.recommend.bgwriter import BGWRITER_LABEL
from conftune.services.recommend.memory import MEMORY_LABEL, MemoryRecommender
from conftune.services.recommend.misc import EFFECTIVE_IO_CONCURRENCY, MISC_LABEL, MiscRecommender
from conftune.services.recommend.parallel import (
    MAX_PARALLEL_WORKERS,
    PARALLEL_LABEL,
    ParallelRecommender,
)
from conftune.services.recommend.wal import WAL_LABEL, WALRecommender
from conftune.core.exceptions import FormatError
from conftune.services.snapshot import (
    PLATFORM_DARWIN,
    PLATFORM_LINUX,
    PLATFORM_WINDOWS,
    Profile,
    ResourceSnapshot,
)
from conftune.services.units import GIGABYTE, TimeUnit


def make_snapshot(memory_gb=8, cpus=4, **kwargs):
    kwargs.setdefault("platform", PLATFORM_LINUX)
    kwargs.setdefault("pg_major_version", "16")
    return ResourceSnapshot(total_memory=memory_gb * GIGABYTE, cpus=cpus, **kwargs)


class TestMemoryRecommender:
    """Tests for memory recommendations."""

    def test_reference_host(self):
        """8GB and 4 CPUs give the well-known defaults."""
        rec = MemoryRecommender(make_snapshot())
        assert rec.recommend("shared_buffers") == "2GB"
        assert rec.recommend("effective_cache_size") == "6GB"
        assert rec.recommend("maintenance_work_mem") == "1GB"
        assert rec.recommend("work_mem") == "26214kB"

    def test_single_cpu_work_mem(self):
        rec = MemoryRecommender(make_snapshot(cpus=1))
        assert rec.recommend("work_mem") == "52428kB"

    def test_maintenance_work_mem_cap(self):
        """maintenance_work_mem stops growing at 2GB."""
        assert MemoryRecommender(make_snapshot(memory_gb=1)).recommend("maintenance_work_mem") == "128MB"
        assert MemoryRecommender(make_snapshot(memory_gb=32)).recommend("maintenance_work_mem") == "2GB"

    def test_max_connections_override_scales_work_mem(self):
        """More connections than the memory tier means less work_mem each."""
        rec = MemoryRecommender(make_snapshot(max_connections=200))
        assert rec.recommend("work_mem") == "13107kB"

    def test_work_mem_floor(self):
        rec = MemoryRecommender(make_snapshot(memory_gb=1, cpus=64, max_connections=10000))
        assert rec.recommend("work_mem") == "64kB"

    def test_promscale_shared_buffers(self):
        rec = MemoryRecommender(make_snapshot(profile=Profile.PROMSCALE))
        assert rec.recommend("shared_buffers") == "4GB"

    def test_windows_shared_buffers_and_maintenance(self):
        rec = MemoryRecommender(make_snapshot(memory_gb=32, platform=PLATFORM_WINDOWS))
        assert rec.recommend("shared_buffers") == "512MB"
        assert rec.recommend("maintenance_work_mem") == "2047MB"

    @pytest.mark.parametrize("memory_gb,cpus,expected", [
        (1, 1, "6553kB"),
        (3, 3, "10922kB"),
        (8, 1, "64MB"),
        (8, 8, "16MB"),
        (16, 10, "27088kB"),
    ])
    def test_windows_work_mem(self, memory_gb, cpus, expected):
        """Windows uses a steeper curve above 2GB."""
        rec = MemoryRecommender(make_snapshot(memory_gb=memory_gb, cpus=cpus, platform=PLATFORM_WINDOWS))
        assert rec.recommend("work_mem") == expected

    def test_unknown_key(self):
        with pytest.raises(UnsupportedKeyError) as exc_info:
            MemoryRecommender(make_snapshot()).recommend("wal_buffers")
        assert exc_info.value.key == "wal_buffers"
        assert exc_info.value.exit_code == 70


class TestParallelRecommender:
    """Tests for parallelism recommendations."""

    def test_four_cpus(self):
        rec = ParallelRecommender(make_snapshot())
        assert rec.recommend("timescaledb.max_background_workers") == "16"
        assert rec.recommend("max_worker_processes") == "23"
        assert rec.recommend("max_parallel_workers_per_gather") == "2"
        assert rec.recommend("max_parallel_workers") == "4"

    def test_odd_cpus_round_half_up(self):
        rec = ParallelRecommender(make_snapshot(cpus=5))
        assert rec.recommend("max_parallel_workers_per_gather") == "3"

    def test_custom_background_workers(self):
        rec = ParallelRecommender(make_snapshot(max_background_workers=32))
        assert rec.recommend("timescaledb.max_background_workers") == "32"
        assert rec.recommend("max_worker_processes") == "39"

    def test_single_cpu_unavailable(self):
        """With one CPU the group is unavailable and cannot recommend."""
        rec = ParallelRecommender(make_snapshot(cpus=1))
        assert not rec.is_available()
        with pytest.raises(ResourceUnavailableError):
            rec.recommend("max_worker_processes")


class TestWALRecommender:
    """Tests for WAL recommendations."""

    def test_defaults(self):
        rec = WALRecommender(make_snapshot())
        assert rec.recommend("wal_buffers") == "16MB"
        assert rec.recommend("min_wal_size") == "512MB"
        assert rec.recommend("max_wal_size") == "1GB"
        assert rec.recommend("checkpoint_timeout") == NO_RECOMMENDATION
        assert rec.recommend("wal_compression") == NO_RECOMMENDATION

    def test_small_memory_wal_buffers(self):
        assert WALRecommender(make_snapshot(memory_gb=1)).recommend("wal_buffers") == "7864kB"

    def test_promscale(self):
        rec = WALRecommender(make_snapshot(profile=Profile.PROMSCALE))
        assert rec.recommend("min_wal_size") == "2GB"
        assert rec.recommend("max_wal_size") == "4GB"
        assert rec.recommend("checkpoint_timeout") == "15min"
        assert rec.recommend("wal_compression") == "on"

    def test_disk_size(self):
        """max_wal_size takes 80% of the WAL disk."""
        rec = WALRecommender(make_snapshot(wal_disk_size=10 * GIGABYTE))
        assert rec.recommend("max_wal_size") == "8GB"
        assert rec.recommend("min_wal_size") == "4GB"

    def test_disk_size_rounds_up_to_segment(self):
        rec = WALRecommender(make_snapshot(wal_disk_size=GIGABYTE))
        assert rec.recommend("max_wal_size") == "832MB"
        assert rec.recommend("min_wal_size") == "416MB"


class TestMiscRecommender:
    """Tests for miscellaneous recommendations."""

    def test_fixed_values(self):
        rec = MiscRecommender(make_snapshot())
        assert rec.recommend("default_statistics_target") == "500"
        assert rec.recommend("random_page_cost") == "1.1"
        assert rec.recommend("checkpoint_completion_target") == "0.9"
        assert rec.recommend("autovacuum_max_workers") == "10"
        assert rec.recommend("autovacuum_naptime") == "10"

    @pytest.mark.parametrize("memory_gb,expected", [
        (2, "20"),
        (3, "50"),
        (4, "50"),
        (6, "75"),
        (7, "100"),
    ])
    def test_max_connections_tiers(self, memory_gb, expected):
        assert MiscRecommender(make_snapshot(memory_gb=memory_gb)).recommend("max_connections") == expected

    def test_max_connections_override(self):
        assert MiscRecommender(make_snapshot(max_connections=250)).recommend("max_connections") == "250"

    @pytest.mark.parametrize("memory_gb,expected", [
        (7, "64"),
        (8, "128"),
        (15, "128"),
        (16, "256"),
        (32, "512"),
    ])
    def test_max_locks_tiers(self, memory_gb, expected):
        rec = MiscRecommender(make_snapshot(memory_gb=memory_gb))
        assert rec.recommend("max_locks_per_transaction") == expected

    @pytest.mark.parametrize("version,expected", [("9.6", "200"), ("12", "200"), ("13", "256")])
    def test_effective_io_concurrency(self, version, expected):
        rec = MiscRecommender(make_snapshot(pg_major_version=version))
        assert rec.recommend("effective_io_concurrency") == expected

    def test_version_gated_values(self):
        """Settings newer than the server get no recommendation."""
        old = MiscRecommender(make_snapshot(pg_major_version="11"))
        assert old.recommend("jit") == NO_RECOMMENDATION
        assert old.recommend("default_toast_compression") == NO_RECOMMENDATION

        mid = MiscRecommender(make_snapshot(pg_major_version="13"))
        assert mid.recommend("jit") == "off"
        assert mid.recommend("default_toast_compression") == NO_RECOMMENDATION

        new = MiscRecommender(make_snapshot(pg_major_version="14"))
        assert new.recommend("default_toast_compression") == "lz4"


class TestSettingsGroups:
    """Tests for group construction and key gating."""

    def test_processing_order(self):
        groups = build_settings_groups(make_snapshot())
        assert [g.label for g in groups] == list(GROUP_LABELS)
        assert GROUP_LABELS == (MEMORY_LABEL, PARALLEL_LABEL, WAL_LABEL, BGWRITER_LABEL, MISC_LABEL)

    def test_max_parallel_workers_needs_pg10(self):
        assert MAX_PARALLEL_WORKERS in get_settings_group(PARALLEL_LABEL, make_snapshot()).keys
        old = get_settings_group(PARALLEL_LABEL, make_snapshot(pg_major_version="9.6"))
        assert MAX_PARALLEL_WORKERS not in old.keys

    @pytest.mark.parametrize("platform,included", [
        (PLATFORM_LINUX, True),
        (PLATFORM_DARWIN, False),
        (PLATFORM_WINDOWS, False),
    ])
    def test_effective_io_concurrency_linux_only(self, platform, included):
        group = get_settings_group(MISC_LABEL, make_snapshot(platform=platform))
        assert (EFFECTIVE_IO_CONCURRENCY in group.keys) is included

    def test_bgwriter_default_profile_makes_no_recommendations(self):
        snapshot = make_snapshot()
        group = get_settings_group(BGWRITER_LABEL, snapshot)
        rec = group.recommender(snapshot)
        assert all(rec.recommend(key) == NO_RECOMMENDATION for key in group.keys)

    def test_bgwriter_promscale(self):
        snapshot = make_snapshot(profile=Profile.PROMSCALE)
        rec = get_settings_group(BGWRITER_LABEL, snapshot).recommender(snapshot)
        assert rec.recommend("bgwriter_delay") == "10ms"
        assert rec.recommend("bgwriter_lru_maxpages") == "100000"
        assert rec.recommend("bgwriter_flush_after") == "0"

    def test_unknown_label(self):
        with pytest.raises(UnsupportedKeyError):
            get_settings_group("vacuum", make_snapshot())


class TestParseValue:
    """Tests for value parsing used in comparisons."""

    def test_bytes(self):
        assert parse_value(ValueKind.BYTES, "1kB") == 1024.0

    def test_bool(self):
        assert parse_value(ValueKind.BOOL, "on") == 1.0
        assert parse_value(ValueKind.BOOL, "'off'") == 0.0

    def test_time_in_milliseconds(self):
        assert parse_value(ValueKind.TIME, "1s") == 1000.0
        assert parse_value(ValueKind.TIME, "10", TimeUnit.SECONDS) == 10000.0

    @pytest.mark.parametrize("kind,value", [
        (ValueKind.NUMERIC, "nan"),
        (ValueKind.NUMERIC, "many"),
        (ValueKind.BOOL, "maybe"),
        (ValueKind.ENUM, "lz4"),
    ])
    def test_invalid(self, kind, value):
        with pytest.raises(FormatError):
            parse_value(kind, value)
