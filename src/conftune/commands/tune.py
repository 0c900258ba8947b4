"""postgresql.conf tuning and restore commands.

Commands:
- conftune tune (review and apply recommendations)
- conftune restore (put back a backup made by tune)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from conftune.core import (
    AuditEventType,
    BackupError,
    ConfigurationError,
    EnvOverrides,
    ExecutionContext,
    UserAbort,
    ValidationError,
    configure_audit_logger,
    get_audit_logger,
    load_env_overrides,
)
from conftune.services.backup import BackupManager
from conftune.services.conffile import ConfigFileState, KeyTable, build_key_table
from conftune.services.snapshot import (
    MAX_BACKGROUND_WORKERS_DEFAULT,
    Profile,
    ResourceSnapshot,
    current_platform,
    validate_pg_major_version,
)
from conftune.services.system import (
    CONF_FILENAME,
    detect_pg_major_version,
    find_conf_file,
    get_cpu_count,
    get_total_memory,
    parse_size_flag,
    resolve_file_path,
)
from conftune.services.tuner import (
    PROMPT_YES_NO,
    Approval,
    Tuner,
    TuneResult,
    prompt_until_valid,
    yes_no_checker,
)


@dataclass
class TuneOptions:
    """Resource and path options for a tune or restore run.

    Unset values fall back to the environment, then the configuration file,
    then host detection.
    """

    conf_path: Optional[Path] = None
    out_path: Optional[Path] = None
    memory: Optional[str] = None
    cpus: Optional[int] = None
    pg_version: Optional[str] = None
    pg_config: Optional[str] = None
    wal_disk_size: Optional[str] = None
    max_conns: int = 0
    max_bg_workers: Optional[int] = None
    profile: Optional[str] = None


def _parse_profile(value: str) -> Profile:
    try:
        return Profile(value.lower())
    except ValueError:
        raise ValidationError(
            f"unknown profile: {value}",
            hint=f"Valid values: {', '.join(p.value for p in Profile)}",
        ) from None


def resolve_pg_version(ctx: ExecutionContext, opts: TuneOptions, env: EnvOverrides) -> str:
    """Flag, then environment, then config file, then pg_config."""
    version = opts.pg_version or env.pg_version or ctx.config.defaults.pg_version
    if version:
        return validate_pg_major_version(version)
    pg_config = opts.pg_config or ctx.config.defaults.pg_config
    ctx.console.verbose(f"Detecting PostgreSQL version with {pg_config}")
    return detect_pg_major_version(pg_config)


def build_snapshot(
    ctx: ExecutionContext,
    opts: TuneOptions,
    env: Optional[EnvOverrides] = None,
) -> ResourceSnapshot:
    """Assemble the resource snapshot for this run.

    Raises:
        ValidationError: On an invalid size, CPU count, version or profile
    """
    env = env or load_env_overrides()
    defaults = ctx.config.defaults

    memory_flag = opts.memory or env.memory
    total_memory = parse_size_flag(memory_flag, "--memory") if memory_flag else get_total_memory()

    cpus = opts.cpus or env.cpus or get_cpu_count()
    if cpus <= 0:
        raise ValidationError(f"invalid --cpus value: {cpus}")

    wal_disk_size = parse_size_flag(opts.wal_disk_size, "--wal-disk-size") if opts.wal_disk_size else 0

    return ResourceSnapshot(
        total_memory=total_memory,
        cpus=cpus,
        pg_major_version=resolve_pg_version(ctx, opts, env),
        max_connections=opts.max_conns,
        wal_disk_size=wal_disk_size,
        max_background_workers=opts.max_bg_workers or defaults.max_background_workers
        or MAX_BACKGROUND_WORKERS_DEFAULT,
        profile=_parse_profile(opts.profile or env.profile or defaults.profile),
        platform=current_platform(),
    )


def locate_conf_file(ctx: ExecutionContext, opts: TuneOptions, pg_version: str) -> Path:
    """Find postgresql.conf and have the operator confirm a guessed path.

    Raises:
        ConfigurationError: If no file can be found
        UserAbort: If the operator rejects the guessed path
    """
    if opts.conf_path is not None:
        path = resolve_file_path(opts.conf_path, CONF_FILENAME)
    else:
        path = find_conf_file(current_platform(), pg_version)

    ctx.console.statement("Using postgresql.conf at this path:")
    ctx.console.print(f"{path}\n", markup=False)

    if opts.conf_path is None:
        question = "Is this the correct path? " + PROMPT_YES_NO
        if prompt_until_valid(ctx, question, yes_no_checker) is not Approval.ACCEPT:
            raise UserAbort(
                "please pass in the correct path to postgresql.conf using the --conf-path flag"
            )
    return path


def read_conf_file(path: Path, key_table: KeyTable) -> ConfigFileState:
    try:
        with open(path) as f:
            return ConfigFileState.scan(f, key_table)
    except OSError as e:
        raise ConfigurationError(
            f"could not open config file for reading: {path}",
            details=[str(e)],
            hint="Check the path and file permissions",
        ) from e


def run_tune(ctx: ExecutionContext, opts: TuneOptions) -> TuneResult:
    """Tune a postgresql.conf end to end.

    Raises:
        TuneError: Any failure, including UserAbort when the operator quits
    """
    config = ctx.config
    audit = configure_audit_logger(config.audit.path, enabled=config.audit.enabled)

    snapshot = build_snapshot(ctx, opts)
    ctx.console.verbose(
        f"Profile: {snapshot.profile.value} ({snapshot.profile.description})"
    )
    conf_path = locate_conf_file(ctx, opts, snapshot.pg_major_version)
    key_table = build_key_table()
    state = read_conf_file(conf_path, key_table)

    backup_path = None
    if not ctx.dry_run and config.backup.enabled:
        backup_path = BackupManager(config.backup).backup(state)
        ctx.console.info(f"Writing backup to: {backup_path}")

    dest = opts.out_path or conf_path.resolve()
    tuner = Tuner(ctx, state, snapshot, key_table, library=config.defaults.library)
    try:
        result = tuner.run(dest)
    except UserAbort as e:
        audit.log_aborted(AuditEventType.CONFIG_MODIFY, str(conf_path), message=e.message)
        raise

    params = {
        "profile": snapshot.profile.value,
        "pg_version": snapshot.pg_major_version,
        "tuned_groups": result.tuned_groups,
        "changed_lines": result.changed_lines,
    }
    if ctx.dry_run:
        audit.log_dry_run(AuditEventType.CONFIG_MODIFY, str(dest), message=f"Would tune {conf_path}")
    else:
        audit.log_success(
            AuditEventType.CONFIG_MODIFY,
            str(dest),
            message=f"Tuned {conf_path}",
            parameters=params,
        )

    if not ctx.quiet:
        ctx.console.print()
        ctx.console.summary(
            "Tuning Complete",
            {
                "Config File": str(dest),
                "Profile": snapshot.profile.value,
                "Groups Updated": ", ".join(result.tuned_groups) or "none",
                "Groups Skipped": ", ".join(result.skipped_groups) or "none",
                "Backup File": str(backup_path) if backup_path else "N/A",
                "Written": result.written_to is not None,
            },
        )
        if result.changed and result.written_to is not None:
            ctx.console.hint("Restart PostgreSQL for the new settings to take effect")
    return result


def choose_backup(ctx: ExecutionContext, count: int) -> int:
    """Ask for a 1-based backup number. --yes picks the newest."""
    if ctx.yes:
        return count
    while True:
        try:
            response = ctx.console.input(f"Use which backup? Number or (q)uit [1-{count}]: ")
        except EOFError:
            raise UserAbort("could not read response: input closed") from None
        response = response.strip().lower()
        if response in ("q", "quit"):
            raise UserAbort("no backup restored")
        if response.isdigit() and 1 <= int(response) <= count:
            return int(response)


def run_restore(ctx: ExecutionContext, opts: TuneOptions) -> Optional[Path]:
    """Restore postgresql.conf from a backup made by tune.

    Returns:
        The backup that was restored, or None on a dry run

    Raises:
        BackupError: If there are no backups or the restore fails
    """
    config = ctx.config
    configure_audit_logger(config.audit.path, enabled=config.audit.enabled)

    manager = BackupManager(config.backup)
    backups = manager.list_backups()
    if not backups:
        raise BackupError(
            f"no backups found in {manager.directory}",
            hint="Backups are created by `conftune tune` before it writes",
        )

    if opts.conf_path is not None:
        conf_path = resolve_file_path(opts.conf_path, CONF_FILENAME)
    else:
        env = load_env_overrides()
        conf_path = locate_conf_file(ctx, opts, resolve_pg_version(ctx, opts, env))

    ctx.console.table(
        "Available backups",
        ["#", "Created", "Path"],
        [
            [str(i), b.created.strftime("%Y-%m-%d %H:%M"), str(b.path)]
            for i, b in enumerate(backups, start=1)
        ],
    )
    chosen = backups[choose_backup(ctx, len(backups)) - 1]

    if ctx.dry_run:
        ctx.console.statement(f"Would restore {chosen.path} to {conf_path} (--dry-run)")
        get_audit_logger().log_dry_run(
            AuditEventType.CONFIG_RESTORE, str(conf_path), message=f"Would restore {chosen.path}"
        )
        return None

    manager.restore(chosen.path, conf_path)
    ctx.console.success(f"Restored {conf_path} from {chosen.path}")
    return chosen.path
