"""conftune command line: tune, restore and config commands."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from conftune import __version__
from conftune.core.config import DEFAULT_CONFIG_PATH, TunerConfig, get_example_config
from conftune.core.context import create_context
from conftune.core.exceptions import TuneError
from conftune.core.output import console as app_console
from conftune.services.snapshot import SUPPORTED_PG_VERSIONS


app = typer.Typer(
    name="conftune",
    help="Tune postgresql.conf for TimescaleDB based on available resources.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Inspect the conftune configuration file.",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")


# Options shared by several commands
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Show the changes without overwriting the configuration file.",
        is_flag=True,
    ),
]

YesOption = Annotated[
    bool,
    typer.Option(
        "--yes",
        "-y",
        help="Answer 'yes' to every prompt.",
        is_flag=True,
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Show only the total recommendations at the end.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Print without colors.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"conftune YAML configuration. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]

ConfPathOption = Annotated[
    Optional[Path],
    typer.Option(
        "--conf-path",
        help="Path to postgresql.conf (or its directory). If blank, well-known locations are searched.",
    ),
]

PGVersionOption = Annotated[
    Optional[str],
    typer.Option(
        "--pg-version",
        help=f"Major version of PostgreSQL. Default is determined via pg_config. "
        f"Valid values: {', '.join(SUPPORTED_PG_VERSIONS)}",
    ),
]

PGConfigOption = Annotated[
    Optional[str],
    typer.Option(
        "--pg-config",
        help="Path to the pg_config binary (or its directory).",
    ),
]


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"conftune version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=_show_version,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Tune postgresql.conf for TimescaleDB.

    Checks that the extension is listed in shared_preload_libraries and
    reviews memory, parallelism, WAL, background writer and other settings
    against the machine's resources.

    [bold]Examples:[/bold]

        conftune tune --dry-run
        conftune tune --memory 8GB --cpus 4 --conf-path /etc/postgresql/16/main
        conftune tune --quiet --yes
        conftune restore
        conftune config show
    """
    pass


def handle_error(error: TuneError) -> None:
    """Report error on stderr and exit with its code."""
    app_console.error(error.message)
    for line in error.details or []:
        app_console.print(f"  [dim]{line}[/dim]")
    if error.hint:
        app_console.hint(error.hint)
    raise typer.Exit(error.exit_code)


@app.command("tune")
def tune_cmd(
    conf_path: ConfPathOption = None,
    out_path: Annotated[
        Optional[Path],
        typer.Option(
            "--out-path",
            help="Where to write the new configuration file. Default is the file that was read.",
        ),
    ] = None,
    memory: Annotated[
        Optional[str],
        typer.Option(
            "--memory",
            help="Memory to base recommendations on, e.g. 4GB. Default is all memory.",
        ),
    ] = None,
    cpus: Annotated[
        Optional[int],
        typer.Option(
            "--cpus",
            help="Number of CPU cores to base recommendations on. Default is all cores.",
            min=1,
        ),
    ] = None,
    pg_version: PGVersionOption = None,
    pg_config: PGConfigOption = None,
    wal_disk_size: Annotated[
        Optional[str],
        typer.Option(
            "--wal-disk-size",
            help="Size of the disk where the WAL resides, e.g. 50GB. Helps tune WAL behavior.",
        ),
    ] = None,
    max_conns: Annotated[
        int,
        typer.Option(
            "--max-conns",
            help="Max number of connections. Default is picked from memory.",
            min=0,
        ),
    ] = 0,
    max_bg_workers: Annotated[
        Optional[int],
        typer.Option(
            "--max-bg-workers",
            help="Max number of TimescaleDB background workers (at least 16).",
        ),
    ] = None,
    profile: Annotated[
        Optional[str],
        typer.Option(
            "--profile",
            help="Recommendation profile: default or promscale.",
        ),
    ] = None,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
    quiet: QuietOption = False,
    verbose: VerboseOption = 0,
    config: ConfigOption = None,
    no_color: NoColorOption = False,
) -> None:
    """Review and apply recommendations to postgresql.conf.

    Only settings that are missing, commented out, or more than 5% away from
    the recommendation are shown. Every other line of the file is kept as is.

    [bold]Examples:[/bold]

        # Preview against explicit resources
        conftune tune --memory 8GB --cpus 4 --pg-version 16 --dry-run

        # Accept everything, print only the final settings
        conftune tune --quiet --yes
    """
    from conftune.commands.tune import TuneOptions, run_tune

    ctx = create_context(
        dry_run=dry_run,
        yes=yes,
        quiet=quiet,
        verbose=verbose,
        no_color=no_color,
        config=config,
    )
    opts = TuneOptions(
        conf_path=conf_path,
        out_path=out_path,
        memory=memory,
        cpus=cpus,
        pg_version=pg_version,
        pg_config=pg_config,
        wal_disk_size=wal_disk_size,
        max_conns=max_conns,
        max_bg_workers=max_bg_workers,
        profile=profile,
    )

    try:
        run_tune(ctx, opts)
    except TuneError as e:
        handle_error(e)


@app.command("restore")
def restore_cmd(
    conf_path: ConfPathOption = None,
    pg_version: PGVersionOption = None,
    pg_config: PGConfigOption = None,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
    verbose: VerboseOption = 0,
    config: ConfigOption = None,
    no_color: NoColorOption = False,
) -> None:
    """Restore postgresql.conf from a backup made by tune.

    With --yes the most recent backup is restored.
    """
    from conftune.commands.tune import TuneOptions, run_restore

    ctx = create_context(
        dry_run=dry_run,
        yes=yes,
        verbose=verbose,
        no_color=no_color,
        config=config,
    )
    opts = TuneOptions(conf_path=conf_path, pg_version=pg_version, pg_config=pg_config)

    try:
        run_restore(ctx, opts)
    except TuneError as e:
        handle_error(e)


@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Print the effective configuration, falling back to defaults."""
    ctx = create_context(verbose=verbose, no_color=no_color, config=config)

    try:
        loaded = ctx.config
        ctx.console.summary("conftune", {"Config file": ctx.config_path, "Found": ctx.config_path.exists()})
        ctx.console.yaml(loaded.to_yaml(), title=ctx.config_path.name)
    except TuneError as e:
        handle_error(e)


@config_app.command("validate")
def config_validate(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Fail with exit code 2 unless the configuration file loads cleanly."""
    ctx = create_context(verbose=verbose, no_color=no_color, config=config)

    try:
        loaded = TunerConfig.load(ctx.config_path)
        ctx.console.success(f"Configuration is valid: {ctx.config_path}")
        if ctx.is_verbose:
            ctx.console.yaml(loaded.to_yaml())
    except TuneError as e:
        handle_error(e)


@config_app.command("example")
def config_example(no_color: NoColorOption = False) -> None:
    """Write a commented example configuration to stdout."""
    ctx = create_context(no_color=no_color)
    ctx.console.setting(get_example_config())


if __name__ == "__main__":
    app()
