"""Interactive tuning pipeline.

Sequence for one run:
1. Make sure shared_preload_libraries loads the library
2. Ask whether to tune the other settings
3. For each settings group in order, show what should change and ask
4. Record the last-tuned markers
5. Write the file, unless this is a dry run

Declining step 2 only skips the settings groups. Answering no or quit at
any other prompt raises UserAbort and nothing is written.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from conftune import __version__
from conftune.core.context import ExecutionContext
from conftune.core.exceptions import UserAbort
from conftune.services.conffile import ConfigFileState, KeyTable
from conftune.services.patch import (
    DEFAULT_LIBRARY,
    PatchWriter,
    default_shared_lib_line,
    shared_lib_display,
    update_shared_lib_line,
)
from conftune.services.reconcile import GroupDecisions, decide_group
from conftune.services.recommend import SettingsGroup, build_settings_groups
from conftune.services.snapshot import ResourceSnapshot
from conftune.services.units import bytes_to_decimal


PROMPT_OKAY = "Is this okay? "
PROMPT_YES_NO = "[(y)es/(n)o]: "
PROMPT_SKIP = "[(y)es/(s)kip/(q)uit]: "
PROMPT_TUNE = "Tune memory/parallelism/WAL and other settings? "
PROMPT_QUIET = "Use these recommendations? "

CURRENT_LABEL = "Current:"
RECOMMENDED_LABEL = "Recommended:"


class Approval(Enum):
    """Operator's answer to a prompt."""

    ACCEPT = "accept"
    SKIP = "skip"
    QUIT = "quit"


def _is_yes(r: str) -> bool:
    return r in ("y", "yes")


def _is_no(r: str) -> bool:
    return r in ("n", "no")


def yes_no_checker(response: str) -> Optional[Approval]:
    """[(y)es/(n)o]; None means ask again."""
    if _is_yes(response):
        return Approval.ACCEPT
    if _is_no(response):
        return Approval.QUIT
    return None


def skip_checker(response: str) -> Optional[Approval]:
    """[(y)es/(s)kip/(q)uit]; None means ask again."""
    if _is_yes(response):
        return Approval.ACCEPT
    if response in ("s", "skip"):
        return Approval.SKIP
    if _is_no(response) or response in ("q", "quit"):
        return Approval.QUIT
    return None


Checker = Callable[[str], Optional[Approval]]


def prompt_until_valid(ctx: ExecutionContext, question: str, checker: Checker) -> Approval:
    """Ask until the answer is valid. --yes accepts without asking.

    Raises:
        UserAbort: If the input stream closes
    """
    if ctx.yes:
        return Approval.ACCEPT
    while True:
        try:
            response = ctx.console.input(question)
        except EOFError:
            raise UserAbort("could not read response: input closed") from None
        approval = checker(response.strip().lower())
        if approval is not None:
            return approval


@dataclass
class TuneResult:
    """What a run changed."""

    shared_lib_updated: bool = False
    tuned_groups: list[str] = field(default_factory=list)
    skipped_groups: list[str] = field(default_factory=list)
    unavailable_groups: list[str] = field(default_factory=list)
    changed_lines: int = 0
    written_to: Optional[Path] = None

    @property
    def changed(self) -> bool:
        return self.shared_lib_updated or self.changed_lines > 0


class Tuner:
    """Runs the approval protocol over one scanned file.

    key_table must be the table state was scanned with.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        state: ConfigFileState,
        snapshot: ResourceSnapshot,
        key_table: KeyTable,
        library: str = DEFAULT_LIBRARY,
    ) -> None:
        self.ctx = ctx
        self.console = ctx.console
        self.state = state
        self.key_table = key_table
        self.snapshot = snapshot
        self.library = library
        self.writer = PatchWriter(state)
        self.groups = build_settings_groups(snapshot)

    # Prompts
    def prompt(self, question: str, checker: Checker) -> Approval:
        return prompt_until_valid(self.ctx, question, checker)

    def confirm(self, question: str, abort_message: str) -> None:
        if self.prompt(question + PROMPT_YES_NO, yes_no_checker) is not Approval.ACCEPT:
            raise UserAbort(abort_message)

    # Pipeline
    def run(self, dest: Optional[Path] = None) -> TuneResult:
        """Run the whole pipeline and write to dest unless dry-run.

        Raises:
            UserAbort: If the operator declines a prompt
        """
        result = TuneResult()
        if self.ctx.quiet:
            self._run_quiet(result)
        else:
            self._run_interactive(result)

        if result.changed:
            self.writer.append_last_tuned(__version__)

        if self.ctx.dry_run:
            self.console.statement("Success, but not writing due to --dry-run flag")
        elif dest is not None:
            self.console.statement(f"Saving changes to: {dest}")
            with open(dest, "w") as f:
                self.state.write_to(f)
            result.written_to = dest
        return result

    def _run_interactive(self, result: TuneResult) -> None:
        result.shared_lib_updated = self.process_shared_lib()

        self.console.print()
        if self.prompt(PROMPT_TUNE + PROMPT_YES_NO, yes_no_checker) is Approval.ACCEPT:
            self.process_groups(result)
        else:
            self.console.info("Skipping tuning of other settings")

    def _run_quiet(self, result: TuneResult) -> None:
        self._intro()
        result.shared_lib_updated = self._shared_lib_quiet()
        self.process_groups(result, quiet=True)
        self.confirm(PROMPT_QUIET, "not using these settings could lead to suboptimal performance")

    def _intro(self) -> None:
        self.console.statement(
            f"Recommendations based on {bytes_to_decimal(self.snapshot.total_memory)} "
            f"of available memory and {self.snapshot.cpus} CPUs "
            f"for PostgreSQL {self.snapshot.pg_major_version}"
        )

    def _library_needed(self) -> str:
        return f"`{self.library}` needs to be added to shared_preload_libraries in order for it to work"

    # shared_preload_libraries
    def process_shared_lib(self) -> bool:
        """Show and apply the shared_preload_libraries change, if any."""
        shared = self.state.shared_lib
        if shared is None:
            self.console.statement("Unable to find shared_preload_libraries in configuration file")
            self.confirm("Append to end? ", self._library_needed())
            self.writer.apply_shared_lib(self.library)
            self.console.success(
                f"appending shared_preload_libraries = '{self.library}' to end of configuration file"
            )
            return True

        line = self.state.lines[shared.index]
        if update_shared_lib_line(line, shared, self.library) == line:
            self.console.success("shared_preload_libraries is set correctly")
            return False

        self.console.statement("shared_preload_libraries needs to be updated")
        current = shared_lib_display(shared)
        self.console.statement(CURRENT_LABEL)
        self.console.setting(current)
        self.console.statement(RECOMMENDED_LABEL)
        self.console.setting(update_shared_lib_line(current, shared, self.library))

        self.confirm(PROMPT_OKAY, self._library_needed())
        self.writer.apply_shared_lib(self.library)
        self.console.success("shared_preload_libraries will be updated")
        return True

    def _shared_lib_quiet(self) -> bool:
        shared = self.state.shared_lib
        if shared is None:
            self.console.setting(default_shared_lib_line(self.library))
            self.writer.apply_shared_lib(self.library)
            return True
        new_line = self.writer.apply_shared_lib(self.library)
        if new_line is None:
            return False
        self.console.setting(new_line)
        return True

    # Settings groups
    def process_groups(self, result: TuneResult, quiet: bool = False) -> None:
        if not quiet:
            self._intro()
        for group in self.groups:
            recommender = group.recommender(self.snapshot)
            if not recommender.is_available():
                self.console.verbose(f"{group.label} settings unavailable for these resources")
                result.unavailable_groups.append(group.label)
                continue
            decisions = decide_group(group, recommender, self.state, self.key_table)
            self.process_group(group, decisions, result, quiet)

    def _report_duplicates(self, group: SettingsGroup) -> None:
        for key in group.keys:
            if key in self.state.duplicates:
                self.console.verbose(
                    f"{key} appears on more than one line; using the last one "
                    f"(line {self.state.parsed[key].index + 1})"
                )

    def process_group(
        self,
        group: SettingsGroup,
        decisions: GroupDecisions,
        result: TuneResult,
        quiet: bool = False,
    ) -> None:
        label = group.label
        visible = decisions.visible
        if not quiet:
            self.console.print()
            self.console.statement(f"{label[:1].upper()}{label[1:]} settings recommendations")
            self._report_duplicates(group)

        if not visible:
            if not quiet:
                self.console.success(f"{label} settings are already tuned")
            return

        if not quiet:
            self.console.statement(CURRENT_LABEL)
            for decision in visible:
                if decision.current is None:
                    self.console.error(decision.key, label="missing")
                else:
                    self.console.setting(decision.current.display())
            self.console.statement(RECOMMENDED_LABEL)

        for decision in visible:
            self.console.setting(decision.line)

        if not quiet:
            approval = self.prompt(PROMPT_OKAY + PROMPT_SKIP, skip_checker)
            if approval is Approval.QUIT:
                raise UserAbort(
                    f"{label} settings still need to be tuned, please re-run or do so manually"
                )
            if approval is Approval.SKIP:
                self.console.error(f"{label} settings left alone, but still need tuning", label="warning")
                result.skipped_groups.append(label)
                return
            self.console.success(f"{label} settings will be updated")

        result.changed_lines += self.writer.apply_group(decisions)
        result.tuned_groups.append(label)
