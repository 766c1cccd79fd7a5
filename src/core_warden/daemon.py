"""Background daemon for core-warden."""

import asyncio
import os
import signal
from dataclasses import dataclass
from datetime import datetime

import psutil
import structlog

from core_warden import logging as events
from core_warden.collector import ProcessCollector
from core_warden.config import Config
from core_warden.enforcer import Enforcer
from core_warden.models import CycleReport
from core_warden.procs import ProcessTable, PsutilProcessTable
from core_warden.reconciler import run_one_cycle
from core_warden.state import StateTable

log = structlog.get_logger()


class DaemonAlreadyRunning(RuntimeError):
    """Another core-warden daemon holds the PID file."""


@dataclass
class DaemonState:
    """Runtime state of the daemon."""

    running: bool = False
    cycle_count: int = 0
    enforced_count: int = 0
    failed_count: int = 0
    last_cycle_time: datetime | None = None

    def update_cycle(self, report: CycleReport) -> None:
        """Update state after a completed cycle."""
        self.cycle_count += 1
        self.enforced_count += len(report.enforced)
        self.failed_count += len(report.failed)
        self.last_cycle_time = datetime.now()


class Daemon:
    """Main daemon class driving reconciliation cycles until shutdown.

    Construction validates the environment: the host core count is read and the
    policy resolved once, so a bad core selection fails here with
    ConfigurationError before anything runs.
    """

    def __init__(self, config: Config, table: ProcessTable | None = None):
        self.config = config
        self.state = DaemonState()

        self.table = table if table is not None else PsutilProcessTable()
        self.cpu_count = self.table.cpu_count()
        self.target = config.build_target(self.cpu_count)

        self.processes = StateTable()
        self.collector = ProcessCollector(self.table)
        self.enforcer = Enforcer(self.table)

        self._shutdown_event = asyncio.Event()
        self._owns_pid_file = False

    def run_cycle(self) -> CycleReport:
        """Run one reconciliation cycle against the daemon's own state table."""
        return run_one_cycle(self.target, self.processes, self.collector, self.enforcer)

    async def start(self) -> None:
        """Start the daemon and run until shutdown is requested.

        Raises:
            DaemonAlreadyRunning: Another instance holds the PID file. Nothing
                has been started and stop() has nothing to undo.
        """
        from importlib.metadata import version

        # Check for existing instance before touching anything
        if self._check_already_running():
            raise DaemonAlreadyRunning("Daemon is already running")

        self._write_pid_file()
        self.state.running = True

        events.banner("core-warden", version("core-warden"), self.target, self.cpu_count)

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))
            except NotImplementedError:
                # Windows event loops have no signal handlers; Ctrl+C still interrupts
                log.debug("signal_handler_unavailable", signal=sig.name)

        events.daemon_started()

        await self._main_loop()

    async def stop(self) -> None:
        """Stop the daemon. The state table is memory-only; nothing to flush."""
        if not self.state.running:
            return
        events.daemon_stopping()
        self.state.running = False
        self._remove_pid_file()
        events.daemon_stopped()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        events.signal_received(sig.name)
        self._shutdown_event.set()

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        self._owns_pid_file = True
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove PID file if this daemon wrote it."""
        if self._owns_pid_file and self.config.pid_path.exists():
            self.config.pid_path.unlink()
            log.debug("pid_file_removed")
        self._owns_pid_file = False

    def _discard_stale_pid_file(self) -> None:
        if self.config.pid_path.exists():
            self.config.pid_path.unlink()

    def _check_already_running(self) -> bool:
        """Check if daemon is already running.

        Verifies not just that a process with the PID exists, but that it's
        actually the core-warden daemon. This prevents false positives after
        a reboot when a different process may have the same PID.
        """
        if not self.config.pid_path.exists():
            return False

        try:
            pid = int(self.config.pid_path.read_text().strip())
        except ValueError:
            log.warning("pid_file_invalid", reason="not a number")
            self._discard_stale_pid_file()
            return False

        if pid == os.getpid():
            # Nothing has written the file yet in this process, so it predates a reboot
            log.warning("pid_file_stale", reason="own pid", pid=pid)
            self._discard_stale_pid_file()
            return False

        try:
            proc = psutil.Process(pid)
            cmdline_str = " ".join(proc.cmdline()).lower()
            if "core-warden" in cmdline_str or "core_warden" in cmdline_str:
                events.already_running(pid)
                return True
            log.warning(
                "pid_file_stale",
                reason="different process",
                pid=pid,
                actual_process=proc.name(),
            )
            self._discard_stale_pid_file()
            return False
        except psutil.NoSuchProcess:
            log.warning("pid_file_stale", reason="process not found", pid=pid)
            self._discard_stale_pid_file()
            return False
        except psutil.AccessDenied:
            # Can't inspect process - assume it's running to be safe
            log.warning("pid_check_access_denied", pid=pid)
            events.already_running(pid)
            return True

    async def _main_loop(self) -> None:
        """Run reconciliation cycles every interval_seconds until shutdown.

        A failure anywhere in a cycle is logged and the loop carries on with the
        next cycle; only a shutdown signal ends it.
        """
        interval = self.target.interval_seconds
        heartbeat_every = self.config.system.heartbeat_cycles
        heartbeat_count = 0
        heartbeat_enforced = 0
        heartbeat_failed = 0

        while not self._shutdown_event.is_set():
            try:
                report = self.run_cycle()
                self.state.update_cycle(report)

                heartbeat_count += 1
                heartbeat_enforced += len(report.enforced)
                heartbeat_failed += len(report.failed)
                if heartbeat_count >= heartbeat_every:
                    events.heartbeat(
                        heartbeat_count, len(self.processes), heartbeat_enforced, heartbeat_failed
                    )
                    heartbeat_count = 0
                    heartbeat_enforced = 0
                    heartbeat_failed = 0
            except Exception as e:
                events.cycle_failed(str(e))

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break  # Shutdown requested during sleep
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue to next cycle


async def run_daemon(config: Config | None = None) -> None:
    """Run the daemon until shutdown.

    Args:
        config: Optional config, loads from file if not provided

    Raises:
        ConfigurationError: Invalid config or unsupported host; nothing was started.
        DaemonAlreadyRunning: Another instance holds the PID file.
    """
    if config is None:
        config = Config.load()

    events.configure(config)

    daemon = Daemon(config)

    try:
        await daemon.start()
    except DaemonAlreadyRunning:
        raise
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()
