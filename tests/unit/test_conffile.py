"""Unit tests for the postgresql.conf line model."""

import io

import pytest

from conftune.services.conffile import (
    ConfigFileState,
    KeyTable,
    build_key_table,
    key_pattern,
    parse_shared_lib_line,
    parse_tunable_line,
)


KEY_TABLE = build_key_table()


SAMPLE_CONF = (
    "# -----------------------------\n"
    "# PostgreSQL configuration file\n"
    "# -----------------------------\n"
    "\n"
    "shared_buffers = 128MB\t\t\t# min 128kB\n"
    "#work_mem = 4MB\t\t\t\t# min 64kB\n"
    "max_parallel_workers_per_gather = 2\n"
    "shared_preload_libraries = 'pg_stat_statements'\t# (change requires restart)\n"
    "#max_connections = 100\n"
)


class TestParseTunableLine:
    """Tests for matching a single line against a key pattern."""

    def test_active_line_with_comment(self):
        result = parse_tunable_line("shared_buffers = 128MB\t\t\t# min 128kB", key_pattern("shared_buffers"))
        assert result == (False, "shared_buffers", "128MB", "\t\t\t# min 128kB")

    def test_commented_line(self):
        result = parse_tunable_line("  ## work_mem = 4MB", key_pattern("work_mem"))
        assert result == (True, "work_mem", "4MB", "")

    def test_key_prefix_does_not_match(self):
        """A key must be followed by " = ", not by more name."""
        pattern = key_pattern("max_parallel_workers")
        assert parse_tunable_line("max_parallel_workers_per_gather = 2", pattern) is None

    def test_dotted_key_is_literal(self):
        pattern = key_pattern("timescaledb.max_background_workers")
        assert parse_tunable_line("timescaledbXmax_background_workers = 8", pattern) is None
        assert parse_tunable_line("timescaledb.max_background_workers = 8", pattern) is not None

    def test_missing_spaces_around_equals(self):
        assert parse_tunable_line("work_mem=4MB", key_pattern("work_mem")) is None


class TestParseSharedLibLine:
    """Tests for the shared_preload_libraries line."""

    def test_active(self):
        shared = parse_shared_lib_line("shared_preload_libraries = 'timescaledb'", 3)
        assert shared.index == 3
        assert not shared.commented
        assert shared.libs == "timescaledb"
        assert shared.has_library("timescaledb")

    def test_commented_empty(self):
        shared = parse_shared_lib_line("#shared_preload_libraries = ''\t\t# (change requires restart)")
        assert shared.commented
        assert shared.comment_group == "#"
        assert shared.libs == ""
        assert not shared.has_library("timescaledb")

    def test_library_names_match_whole_entries(self):
        """A library whose name only starts with the wanted one does not count."""
        shared = parse_shared_lib_line("shared_preload_libraries = 'timescaledb_toolkit'")
        assert shared.libraries == ["timescaledb_toolkit"]
        assert not shared.has_library("timescaledb")

    def test_library_entries_are_stripped(self):
        shared = parse_shared_lib_line("shared_preload_libraries = 'pg_stat_statements, timescaledb ,'")
        assert shared.libraries == ["pg_stat_statements", "timescaledb"]
        assert shared.has_library("timescaledb")

    def test_other_line(self):
        assert parse_shared_lib_line("shared_buffers = 128MB") is None


class TestKeyTable:
    """Tests for the key table."""

    def test_contains_every_group_key(self):
        table = build_key_table()
        assert "shared_buffers" in table
        assert "timescaledb.max_background_workers" in table
        assert "jit" in table

    def test_each_run_gets_its_own_table(self):
        assert build_key_table() is not build_key_table()

    def test_explicit_keys(self):
        table = build_key_table(["work_mem"])
        assert list(table) == ["work_mem"]

    def test_scan_only_records_table_keys(self):
        state = ConfigFileState.scan(SAMPLE_CONF, build_key_table(["work_mem"]))
        assert set(state.parsed) == {"work_mem"}
        assert state.shared_lib is not None

    def test_read_only(self):
        table = KeyTable(["work_mem"])
        with pytest.raises(TypeError):
            table["work_mem"] = key_pattern("shared_buffers")


class TestConfigFileState:
    """Tests for scanning and writing a file."""

    def test_scan_records_tunables(self):
        state = ConfigFileState.scan(SAMPLE_CONF, KEY_TABLE)

        buffers = state.parsed["shared_buffers"]
        assert buffers.index == 4
        assert not buffers.commented
        assert buffers.value == "128MB"
        assert buffers.trailing == "\t\t\t# min 128kB"

        work_mem = state.parsed["work_mem"]
        assert work_mem.commented
        assert work_mem.display() == "#work_mem = 4MB"

        assert "max_parallel_workers" not in state.parsed
        assert state.parsed["max_parallel_workers_per_gather"].value == "2"

    def test_scan_records_shared_lib(self):
        state = ConfigFileState.scan(SAMPLE_CONF, KEY_TABLE)
        assert state.shared_lib.index == 7
        assert state.shared_lib.libs == "pg_stat_statements"

    def test_last_match_wins(self):
        """With a key on several lines the last one is used and flagged."""
        state = ConfigFileState.scan("shared_buffers = 1GB\n#shared_buffers = 128MB\n", KEY_TABLE)
        assert state.parsed["shared_buffers"].index == 1
        assert state.parsed["shared_buffers"].commented
        assert state.duplicates == {"shared_buffers"}

    def test_shared_lib_line_is_not_a_tunable(self):
        table = KeyTable(["shared_preload_libraries"])
        state = ConfigFileState.scan("shared_preload_libraries = 'timescaledb'\n", key_table=table)
        assert state.parsed == {}
        assert state.shared_lib is not None

    def test_round_trip_preserves_lines(self):
        """Untouched files are written back byte for byte."""
        assert ConfigFileState.scan(SAMPLE_CONF, KEY_TABLE).render() == SAMPLE_CONF

    def test_missing_final_newline_is_added(self):
        assert ConfigFileState.scan("a = 1\nb = 2", KEY_TABLE).render() == "a = 1\nb = 2\n"

    def test_crlf_line_endings(self):
        state = ConfigFileState.scan("shared_buffers = 1GB\r\nwork_mem = 4MB\r\n", KEY_TABLE)
        assert state.lines == ["shared_buffers = 1GB", "work_mem = 4MB"]
        assert state.parsed["shared_buffers"].value == "1GB"

    def test_scan_from_stream(self):
        state = ConfigFileState.scan(io.StringIO(SAMPLE_CONF), KEY_TABLE)
        assert len(state.lines) == 9

    def test_empty_file(self):
        state = ConfigFileState.scan("", KEY_TABLE)
        assert state.lines == []
        assert state.shared_lib is None
        assert state.render() == ""

    def test_append(self):
        state = ConfigFileState.scan("a = 1\n", KEY_TABLE)
        assert state.append("b = 2") == 1
        assert state.render() == "a = 1\nb = 2\n"

    def test_write_to_counts_characters(self):
        buf = io.StringIO()
        written = ConfigFileState.scan("abc\n", KEY_TABLE).write_to(buf)
        assert written == 4
        assert buf.getvalue() == "abc\n"
