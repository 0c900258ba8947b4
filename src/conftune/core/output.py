"""Terminal output for conftune, built on Rich.

Two streams are used:
- stdout carries configuration lines only, so `conftune tune -q -y > rec.conf`
  captures just the recommendations
- stderr carries statements, prompts, diagnostics and panels

Prompts are blocking line reads, from stdin or an injected stream.
"""

from enum import IntEnum
from typing import Any, Optional, TextIO

from rich import box
from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table


class Verbosity(IntEnum):
    """How much goes to stderr."""
    QUIET = 0    # Errors only
    NORMAL = 1   # Statements and results
    VERBOSE = 2  # Diagnostics such as duplicate keys
    DEBUG = 3    # Everything


class Console:
    """Statement/prompt stream on stderr, settings stream on stdout.

    Args:
        stdout: Stream for configuration lines (default sys.stdout)
        stderr: Stream for everything else (default sys.stderr)
        stdin: Stream prompts read from (default: Rich's input on sys.stdin)
    """

    def __init__(
        self,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        stdin: Optional[TextIO] = None,
    ) -> None:
        self._streams = (stdout, stderr)
        self._stdin = stdin
        self.verbosity = Verbosity.NORMAL
        self.no_color = False
        self._out, self._err = self._build(no_color=False)

    def _build(self, no_color: bool) -> tuple[RichConsole, RichConsole]:
        stdout, stderr = self._streams
        out = RichConsole(file=stdout, highlight=False, no_color=no_color)
        # stderr=True only when no stream is injected, so Rich follows sys.stderr
        err = RichConsole(file=stderr, stderr=stderr is None, highlight=False, no_color=no_color)
        return out, err

    def configure(self, verbosity: int = 1, no_color: bool = False) -> None:
        """Apply the verbosity and color flags of the current command."""
        self.verbosity = Verbosity(min(verbosity, Verbosity.DEBUG))
        if no_color != self.no_color:
            self._out, self._err = self._build(no_color)
        self.no_color = no_color

    def _emit(self, level: Verbosity, markup: str) -> None:
        if self.verbosity >= level:
            self._err.print(markup)

    # Leveled messages (stderr)
    def info(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"[green][INFO][/green] {message}")

    def success(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"[bold green]success:[/bold green] {message}")

    def statement(self, message: str) -> None:
        """Bold line describing what the tuner is doing."""
        self._emit(Verbosity.NORMAL, f"[bold]{message}[/bold]")

    def verbose(self, message: str) -> None:
        self._emit(Verbosity.VERBOSE, f"[dim]{message}[/dim]")

    def debug(self, message: str) -> None:
        self._emit(Verbosity.DEBUG, f"[cyan][DEBUG][/cyan] {message}")

    def error(self, message: str, label: str = "ERROR") -> None:
        """Red label then message. Shown at every verbosity."""
        self._err.print(f"[bold red]{label}:[/bold red] {message}")

    def hint(self, message: str) -> None:
        self._err.print(f"[cyan]Hint:[/cyan] {message}")

    def print(self, message: Any = "", **kwargs: Any) -> None:
        """Print text or a Rich renderable to stderr."""
        self._err.print(message, **kwargs)

    # Configuration lines (stdout)
    def setting(self, line: str) -> None:
        """Print a postgresql.conf line exactly as given, never wrapped."""
        self._out.print(line, markup=False, highlight=False, soft_wrap=True)

    # Panels and tables (stderr)
    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[str]],
        box_style: box.Box = box.ROUNDED,
    ) -> None:
        table = Table(title=title, box=box_style)
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*row)
        self._err.print(table)

    def yaml(self, yaml_text: str, title: str = "Configuration") -> None:
        syntax = Syntax(yaml_text, "yaml", theme="monokai", line_numbers=False)
        self._err.print(Panel(syntax, title=title, border_style="cyan"))

    def summary(self, title: str, items: dict[str, Any]) -> None:
        """Key/value panel; booleans render as a colored Yes/No."""
        lines = []
        for key, value in items.items():
            if isinstance(value, bool):
                value = "[green]Yes[/green]" if value else "[red]No[/red]"
            lines.append(f"[bold]{key}:[/bold] {value}")
        self._err.print(Panel("\n".join(lines), title=title, border_style="blue"))

    # Prompts
    def input(self, prompt: str) -> str:
        """Show prompt on stderr and read one line, without its terminator.

        Raises:
            EOFError: If the input stream is closed
        """
        if self._stdin is None:
            return self._err.input(f"[bold magenta]{prompt}[/bold magenta]")

        self._err.print(f"[bold magenta]{prompt}[/bold magenta]", end="")
        line = self._stdin.readline()
        if not line:
            raise EOFError("input stream closed")
        return line.rstrip("\r\n")


# Global console instance
console = Console()
