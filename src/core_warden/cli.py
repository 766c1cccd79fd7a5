"""CLI commands for core-warden."""

from pathlib import Path

import click

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/core-warden/config.toml)",
)


def _load_config(config_path: Path | None):
    from core_warden.config import Config
    from core_warden.errors import ConfigurationError

    try:
        return Config.load(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="core-warden")
def main() -> None:
    """Keep named processes at idle priority, pinned to one CPU core."""
    pass


@main.command()
@config_option
def daemon(config_path: Path | None) -> None:
    """Run the watchdog until interrupted."""
    import asyncio

    from core_warden.daemon import DaemonAlreadyRunning, run_daemon
    from core_warden.errors import ConfigurationError

    config = _load_config(config_path)

    try:
        asyncio.run(run_daemon(config))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    except DaemonAlreadyRunning as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        pass


@main.command()
@config_option
def check(config_path: Path | None) -> None:
    """Show matching processes and whether they comply. Changes nothing."""
    from core_warden import logging as events
    from core_warden.collector import ProcessCollector
    from core_warden.compliance import evaluate
    from core_warden.cores import format_mask
    from core_warden.errors import ConfigurationError
    from core_warden.procs import PsutilProcessTable

    config = _load_config(config_path)

    try:
        table = PsutilProcessTable()
        target = config.build_target(table.cpu_count())
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    events.configure_quiet()

    click.echo(
        f"Target: priority {target.target_priority.value}, "
        f"mask {format_mask(target.target_affinity_mask)} ({target.core_selection})"
    )

    observations = ProcessCollector(table).collect(target.process_names)
    if not observations:
        click.echo("No matching processes running.")
        return

    click.echo(f"\n{'PID':>7}  {'Name':24}  {'Priority':12}  {'Mask':>10}  Status")
    click.echo("-" * 72)
    for obs in observations:
        if obs.read_error is not None:
            click.echo(f"{obs.pid:>7}  {obs.name[:24]:24}  {'?':12}  {'?':>10}  unreadable")
            continue
        verdict = evaluate(obs, target.target_priority, target.target_affinity_mask)
        status = (
            "compliant"
            if verdict.compliant
            else "drift: " + ", ".join(sorted(r.value for r in verdict.reasons))
        )
        click.echo(
            f"{obs.pid:>7}  {obs.name[:24]:24}  {obs.priority.value:12}  "
            f"{format_mask(obs.affinity_mask):>10}  {status}"
        )


@main.command()
@click.argument("selection")
@click.option("--cpus", type=int, default=None, help="Logical core count (default: this host)")
def mask(selection: str, cpus: int | None) -> None:
    """Print the affinity mask SELECTION resolves to (First, Last or an index)."""
    from core_warden.cores import format_mask, resolve_core_mask
    from core_warden.errors import ConfigurationError

    try:
        if cpus is None:
            from core_warden.procs import PsutilProcessTable

            cpus = PsutilProcessTable().cpu_count()
        click.echo(format_mask(resolve_core_mask(selection, cpus)))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@config_option
def config_show(config_path: Path | None) -> None:
    """Display current configuration."""
    cfg = _load_config(config_path)
    path = config_path or cfg.config_path

    click.echo(f"Config file: {path}")
    click.echo(f"Exists: {path.exists()}")
    click.echo()
    click.echo("[policy]")
    click.echo(f"  process_names = {cfg.policy.process_names}")
    click.echo(f"  interval_seconds = {cfg.policy.interval_seconds}")
    click.echo(f"  core_selection = {cfg.policy.core_selection}")
    click.echo(f"  verbose_already_compliant = {cfg.policy.verbose_already_compliant}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  heartbeat_cycles = {cfg.system.heartbeat_cycles}")
    click.echo(f"  log_max_bytes = {cfg.system.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.system.log_backup_count}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    cfg = _load_config(None)

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from core_warden.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
