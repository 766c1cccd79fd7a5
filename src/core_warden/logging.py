"""Centralized event logging: Rich console lines plus a structlog JSON file.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain helpers (process_enforced, process_removed, heartbeat, etc.)
5. Structlog configuration (configure, configure_quiet, get_structlog)

Every domain helper prints human-readable console output and emits one
structlog event carrying the same facts as fields. The console is for people; the
JSON Lines file is for machines.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

from core_warden.cores import format_mask

if TYPE_CHECKING:
    from core_warden.config import Config
    from core_warden.models import Reason, StateEntry, TargetConfiguration

# Rich console for colorful human-readable output
_console = Console(highlight=False)

_events = structlog.get_logger()


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    PIN = "📌"
    PRUNE = "🧹"
    HEARTBEAT = "[magenta]♡[/]"
    SIGNAL = "⚡"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


def _proc(name: str, pid: int) -> str:
    return f"[cyan]{escape(name)}[/] [dim]({pid})[/]"


def _reasons(reasons: Iterable[Reason]) -> list[str]:
    return sorted(r.value for r in reasons)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def banner(name: str, version: str, target: TargetConfiguration, cpu_count: int) -> None:
    """Log startup banner with the effective policy."""
    names = ", ".join(sorted(target.process_names))
    mask = format_mask(target.target_affinity_mask)
    info(f"[bold cyan]{name}[/] v{version}")
    info(f"Watching: [cyan]{escape(names)}[/] every [cyan]{target.interval_seconds}s[/]")
    info(
        f"Policy: priority [cyan]{target.target_priority.value}[/], "
        f"core [cyan]{escape(target.core_selection)}[/] → mask [cyan]{mask}[/] "
        f"[dim]({cpu_count} logical cores)[/]"
    )
    _events.info(
        "daemon_config",
        version=version,
        process_names=sorted(target.process_names),
        interval_seconds=target.interval_seconds,
        core_selection=target.core_selection,
        mask=mask,
        priority=target.target_priority.value,
        cpu_count=cpu_count,
        verbose_already_compliant=target.verbose_already_compliant,
    )


def daemon_started() -> None:
    """Log daemon startup complete."""
    info("Daemon started", Icon.OK)
    _events.info("daemon_started")


def daemon_stopping() -> None:
    """Log daemon shutdown initiated."""
    info("Daemon stopping...", Icon.WAIT)
    _events.info("daemon_stopping")


def daemon_stopped() -> None:
    """Log daemon shutdown complete."""
    info("Daemon stopped", Icon.OK)
    _events.info("daemon_stopped")


def signal_received(name: str) -> None:
    """Log signal received."""
    info(f"Received [bold]{name}[/]", Icon.SIGNAL)
    _events.info("signal_received", signal=name)


def already_running(pid: int | None = None) -> None:
    """Log daemon already running error."""
    if pid:
        error(f"Another daemon already running [dim](PID {pid})[/]", Icon.FAIL)
    else:
        error("Another daemon already running", Icon.FAIL)
    _events.error("daemon_already_running", pid=pid)


def process_enforced(
    name: str, pid: int, mask: int, priority: str, reasons: Iterable[Reason]
) -> None:
    """Log priority/affinity applied to a non-compliant process."""
    why = _reasons(reasons)
    hex_mask = format_mask(mask)
    info(
        f"{_proc(name, pid)} set to [cyan]{priority}[/], mask [cyan]{hex_mask}[/] "
        f"[dim](reason: {' + '.join(why)})[/]",
        Icon.PIN,
    )
    _events.info(
        "process_enforced", name=name, pid=pid, mask=hex_mask, priority=priority, reasons=why
    )


def process_already_compliant(name: str, pid: int, mask: int) -> None:
    """Log a process found compliant the first time it was seen."""
    hex_mask = format_mask(mask)
    info(f"{_proc(name, pid)} already compliant [dim](mask {hex_mask})[/]", Icon.OK)
    _events.info("process_already_compliant", name=name, pid=pid, mask=hex_mask)


def process_still_compliant(name: str, pid: int, mask: int, since: datetime) -> None:
    """Log a process that remains compliant on a later cycle."""
    hex_mask = format_mask(mask)
    stamp = since.strftime("%Y-%m-%d %H:%M:%S")
    info(f"{_proc(name, pid)} compliant since {stamp} [dim](mask {hex_mask})[/]")
    _events.info(
        "process_still_compliant", name=name, pid=pid, mask=hex_mask, since=since.isoformat()
    )


def process_read_failed(name: str, pid: int, error_msg: str) -> None:
    """Log a process whose priority/affinity could not be read this cycle."""
    warn(f"{_proc(name, pid)} skipped: {escape(error_msg)}")
    _events.warning("process_read_failed", name=name, pid=pid, error=error_msg)


def enforcement_failed(name: str, pid: int, error_msg: str) -> None:
    """Log a failed priority/affinity write."""
    warn(f"{_proc(name, pid)} not updated: {escape(error_msg)}")
    _events.warning("enforcement_failed", name=name, pid=pid, error=error_msg)


def process_failed(name: str, pid: int, error_msg: str) -> None:
    """Log an unexpected error while handling one process."""
    error(f"{_proc(name, pid)} failed: {escape(error_msg)}", Icon.FAIL)
    _events.exception("process_failed", name=name, pid=pid, error=error_msg)


def process_removed(entry: StateEntry) -> None:
    """Log a tracked process that exited and left the state table."""
    info(f"{_proc(entry.name, entry.pid)} exited, removed from state table", Icon.PRUNE)
    _events.info(
        "process_removed",
        name=entry.name,
        pid=entry.pid,
        first_set_time=entry.first_set_time.isoformat(),
    )


def cycle_failed(error_msg: str) -> None:
    """Log a cycle that failed outside per-process handling."""
    error(f"Cycle failed: {escape(error_msg)}", Icon.FAIL)
    _events.exception("cycle_failed", error=error_msg)


def heartbeat(cycles: int, tracked: int, enforced: int, failed: int) -> None:
    """Log periodic heartbeat stats."""
    info(
        f"[cyan]{tracked}[/] tracked, "
        f"[dim]{enforced} enforced, {failed} failed in last {cycles} cycles[/]",
        Icon.HEARTBEAT,
    )
    _events.info(
        "daemon_heartbeat", cycles=cycles, tracked=tracked, enforced=enforced, failed=failed
    )


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to the rotating log file.

    Console output is handled by Rich (see log functions above); structlog
    only writes the machine-parseable file.

    Args:
        config: Application config with paths and rotation settings
    """
    # Ensure state directory exists for log file
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("daemon"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source("daemon"),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_structlog() -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance for the JSON log file.

    For human-readable console output, use the log/info/warn/error
    functions or domain helpers instead.
    """
    return structlog.get_logger()


def configure_quiet(level: int = logging.WARNING) -> None:
    """Configure structlog for one-shot commands that print their own output.

    Events below level are dropped; anything louder goes to stderr so it never
    interleaves with a command's stdout.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
