"""Apply accepted decisions to the line buffer.

Only lines for accepted keys are replaced; keys missing from the file are
appended at the end. Every other line is left exactly as it was read.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from conftune.services.conffile import (
    SHARED_LIB_KEY,
    ConfigFileState,
    ParsedLine,
    SharedLibLine,
    parse_shared_lib_line,
)
from conftune.services.reconcile import Decision, GroupDecisions


DEFAULT_LIBRARY = "timescaledb"

LAST_TUNED_KEY = "timescaledb.last_tuned"
LAST_TUNED_VERSION_KEY = "timescaledb.last_tuned_version"

# Groups: comment prefix, key, quoted value, trailing whitespace and comment
_QUOTED_PATTERN_FMT = r"^(\s*#+?\s*)?({key}) = '(.+?)'(\s*(?:#.*|))$"


def default_shared_lib_line(library: str = DEFAULT_LIBRARY) -> str:
    return f"{SHARED_LIB_KEY} = '{library}'\t# (change requires restart)"


DEFAULT_SHARED_LIB_LINE = default_shared_lib_line()


def format_setting(key: str, value: str, trailing: str = "") -> str:
    return f"{key} = {value}{trailing}"


def update_shared_lib_line(
    line: str,
    shared_lib: SharedLibLine,
    library: str = DEFAULT_LIBRARY,
) -> str:
    """Uncomment the line and make sure library is in its list.

    Existing libraries and any trailing text are kept.
    """
    result = line
    if shared_lib.commented:
        result = result.replace(shared_lib.comment_group, "", 1)

    if shared_lib.has_library(library):
        return result

    new_libs = f"{shared_lib.libs},{library}" if shared_lib.libs else library
    return result.replace(f"= '{shared_lib.libs}'", f"= '{new_libs}'", 1)


def shared_lib_display(shared_lib: SharedLibLine) -> str:
    """The shared_preload_libraries line without its trailing comment."""
    return f"{shared_lib.comment_group}{SHARED_LIB_KEY} = '{shared_lib.libs}'"


class PatchWriter:
    """Mutates a ConfigFileState's lines in place."""

    def __init__(self, state: ConfigFileState) -> None:
        self.state = state

    def apply_decision(self, decision: Decision) -> None:
        current = decision.current
        if current is None:
            index = self.state.append(format_setting(decision.key, decision.recommended))
            trailing = ""
        else:
            index, trailing = current.index, current.trailing
            self.state.lines[index] = format_setting(decision.key, decision.recommended, trailing)
        self.state.parsed[decision.key] = ParsedLine(
            index, False, decision.key, decision.recommended, trailing
        )

    def apply_group(self, decisions: GroupDecisions) -> int:
        """Write every visible decision of an accepted group.

        Returns:
            Number of lines changed or appended
        """
        visible = decisions.visible
        for decision in visible:
            self.apply_decision(decision)
        return len(visible)

    def apply_shared_lib(self, library: str = DEFAULT_LIBRARY) -> Optional[str]:
        """Make the shared_preload_libraries line load library.

        Appends a default line when the file has none.

        Returns:
            The new line, or None when the line was already correct
        """
        shared = self.state.shared_lib
        if shared is None:
            line = default_shared_lib_line(library)
            index = self.state.append(line)
            self.state.shared_lib = parse_shared_lib_line(line, index)
            return line

        old = self.state.lines[shared.index]
        new = update_shared_lib_line(old, shared, library)
        if new == old:
            return None
        self.state.lines[shared.index] = new
        self.state.shared_lib = parse_shared_lib_line(new, shared.index)
        return new

    def set_quoted_param(self, key: str, value: str) -> None:
        """Replace the last line setting key to a quoted value, or append one."""
        pattern = re.compile(_QUOTED_PATTERN_FMT.format(key=re.escape(key)))
        line = f"{key} = '{value}'"
        for index in range(len(self.state.lines) - 1, -1, -1):
            if pattern.match(self.state.lines[index]):
                self.state.lines[index] = line
                return
        self.state.append(line)

    def append_last_tuned(self, version: str, now: Optional[datetime] = None) -> None:
        """Record when and with which version the file was last tuned."""
        now = now or datetime.now(timezone.utc)
        self.set_quoted_param(LAST_TUNED_KEY, now.isoformat(timespec="seconds"))
        self.set_quoted_param(LAST_TUNED_VERSION_KEY, version)
