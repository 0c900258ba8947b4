"""Per-invocation state shared by the commands and the tuner.

One ExecutionContext is built from the CLI flags of each command. It owns
the console the run writes to and loads the tool configuration on first use.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from conftune.core.config import DEFAULT_CONFIG_PATH, TunerConfig
from conftune.core.output import Console, Verbosity, console


@dataclass
class ExecutionContext:
    """Flags, configuration and console for one command run.

    Attributes:
        dry_run: Show the resulting file but never write it
        yes: Accept every prompt without reading input
        quiet: Print only the final recommendations and ask once
        verbosity: Verbosity level for stderr (0-3)
        no_color: Disable colored output
        config_path: YAML file the tool configuration is read from
    """

    dry_run: bool = False
    yes: bool = False
    quiet: bool = False
    verbosity: int = Verbosity.NORMAL
    no_color: bool = False
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    _config: Optional[TunerConfig] = field(default=None, repr=False)
    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        self._console.configure(verbosity=self.verbosity, no_color=self.no_color)

    @property
    def config(self) -> TunerConfig:
        """Tool configuration, or defaults when config_path does not exist."""
        if self._config is None:
            self._config = TunerConfig.load_or_default(self.config_path)
        return self._config

    @property
    def console(self) -> Console:
        return self._console

    @property
    def is_verbose(self) -> bool:
        return self.verbosity >= Verbosity.VERBOSE


def create_context(
    dry_run: bool = False,
    yes: bool = False,
    quiet: bool = False,
    verbose: int = 0,
    no_color: bool = False,
    config: Optional[Path] = None,
    out: Optional[Console] = None,
) -> ExecutionContext:
    """Build the context for a command from its CLI options.

    Args:
        dry_run: --dry-run
        yes: --yes
        quiet: --quiet
        verbose: Number of -v flags
        no_color: --no-color
        config: --config path
        out: Console to use instead of the global one

    Returns:
        Configured execution context
    """
    return ExecutionContext(
        dry_run=dry_run,
        yes=yes,
        quiet=quiet,
        verbosity=min(Verbosity.NORMAL + verbose, Verbosity.DEBUG),
        no_color=no_color,
        config_path=config or DEFAULT_CONFIG_PATH,
        _console=out or console,
    )
