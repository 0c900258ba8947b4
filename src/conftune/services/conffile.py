"""Line model for postgresql.conf.

The file is held as a list of lines. A single forward scan records, for each
tunable key, the last line that mentions it (commented out or not) and the
location of the shared_preload_libraries line. Nothing else about the file is
interpreted, so untouched lines are written back exactly as read.
"""

import io
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Optional, TextIO, Union

from conftune.services.recommend import ALL_KEYS


SHARED_LIB_KEY = "shared_preload_libraries"

# Groups: comment prefix, key, value, trailing whitespace and comment
_TUNABLE_PATTERN_FMT = r"^(\s*#+?\s*)?({key}) = (\S+?)(\s*(?:#.*|))$"
# Groups: comment prefix, comma separated libraries
SHARED_LIB_PATTERN = re.compile(r"(#+?\s*)?shared_preload_libraries = '(.*?)'.*")


def key_pattern(key: str) -> re.Pattern:
    """Compile the line pattern matching `key = value  # comment`."""
    return re.compile(_TUNABLE_PATTERN_FMT.format(key=re.escape(key)))


class KeyTable(Mapping):
    """Read-only mapping of tunable key to its compiled line pattern."""

    def __init__(self, keys: Iterable[str]) -> None:
        self._patterns = {key: key_pattern(key) for key in keys}

    def __getitem__(self, key: str) -> re.Pattern:
        return self._patterns[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)


def build_key_table(keys: Iterable[str] = ALL_KEYS) -> KeyTable:
    """Key table for every key any settings group may tune.

    Built once per run and handed to both the scan and the decision engine.
    """
    return KeyTable(keys)


@dataclass(frozen=True)
class ParsedLine:
    """A line that sets (or comments out) a tunable key."""

    index: int
    commented: bool
    key: str
    value: str
    trailing: str

    def display(self) -> str:
        """The line without its trailing comment, as shown to the operator."""
        prefix = "#" if self.commented else ""
        return f"{prefix}{self.key} = {self.value}"


@dataclass(frozen=True)
class SharedLibLine:
    """The shared_preload_libraries line."""

    index: int
    commented: bool
    comment_group: str
    libs: str

    @property
    def libraries(self) -> list[str]:
        """Entries of the comma separated list, without blanks."""
        return [lib.strip() for lib in self.libs.split(",") if lib.strip()]

    def has_library(self, library: str) -> bool:
        return library in self.libraries


def parse_tunable_line(line: str, pattern: re.Pattern) -> Optional[tuple[bool, str, str, str]]:
    """Match a line against a key pattern.

    Returns:
        (commented, key, value, trailing) or None if the line does not match
    """
    match = pattern.match(line)
    if match is None:
        return None
    comment, key, value, trailing = match.groups()
    return bool(comment), key, value, trailing


def parse_shared_lib_line(line: str, index: int = -1) -> Optional[SharedLibLine]:
    match = SHARED_LIB_PATTERN.search(line)
    if match is None:
        return None
    comment_group = match.group(1) or ""
    return SharedLibLine(
        index=index,
        commented=bool(comment_group),
        comment_group=comment_group,
        libs=match.group(2),
    )


def _split_lines(source: Union[str, Iterable[str]]) -> Iterator[str]:
    if isinstance(source, str):
        source = io.StringIO(source, newline="")
    for raw in source:
        line = raw[:-1] if raw.endswith("\n") else raw
        yield line[:-1] if line.endswith("\r") else line


@dataclass
class ConfigFileState:
    """The whole file as lines, plus what the scan found in them.

    Attributes:
        lines: Every line of the file, without line terminators
        shared_lib: The last shared_preload_libraries line, if any
        parsed: Last matching line per tunable key
        duplicates: Keys matched on more than one line
    """

    lines: list[str] = field(default_factory=list)
    shared_lib: Optional[SharedLibLine] = None
    parsed: dict[str, ParsedLine] = field(default_factory=dict)
    duplicates: set[str] = field(default_factory=set)

    @classmethod
    def scan(
        cls,
        source: Union[str, Iterable[str]],
        key_table: KeyTable,
    ) -> "ConfigFileState":
        """Read all lines and record the ones that matter, in one pass.

        A line that is the shared_preload_libraries line is not also
        considered for tunable keys. When a key appears on several lines the
        last one wins.
        """
        state = cls()
        for index, line in enumerate(_split_lines(source)):
            shared = parse_shared_lib_line(line, index)
            if shared is not None:
                state.shared_lib = shared
            else:
                for key, pattern in key_table.items():
                    result = parse_tunable_line(line, pattern)
                    if result is None:
                        continue
                    if key in state.parsed:
                        state.duplicates.add(key)
                    commented, name, value, trailing = result
                    state.parsed[key] = ParsedLine(index, commented, name, value, trailing)
            state.lines.append(line)
        return state

    def write_to(self, stream: TextIO) -> int:
        """Write every line followed by a newline.

        Returns:
            Number of characters written
        """
        written = 0
        for line in self.lines:
            written += stream.write(line + "\n")
        return written

    def render(self) -> str:
        buf = io.StringIO()
        self.write_to(buf)
        return buf.getvalue()

    def append(self, line: str) -> int:
        """Append a line and return its index."""
        self.lines.append(line)
        return len(self.lines) - 1
