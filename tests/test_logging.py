"""Tests for console/JSON event logging."""

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from unittest.mock import PropertyMock, patch

import pytest
import structlog
from structlog.testing import capture_logs

from core_warden import logging as events
from core_warden.config import Config
from core_warden.models import PriorityClass, Reason, StateEntry

from tests.conftest import make_target


@pytest.fixture
def configured(tmp_path):
    """Run configure() against tmp_path, restoring logging afterwards."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    config = Config()

    with patch.object(Config, "state_dir", new_callable=PropertyMock, return_value=tmp_path):
        events.configure(config)
        yield config

    for handler in _file_handlers():
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
    structlog.reset_defaults()


def _file_handlers() -> list[logging.handlers.RotatingFileHandler]:
    return [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]


class TestConsole:
    """Tests for the Rich console lines."""

    def test_log_includes_level_and_message(self, capsys):
        events.warn("disk is fine")
        out = capsys.readouterr().out
        assert "[warn]" in out
        assert "disk is fine" in out

    def test_process_names_are_escaped(self, capsys):
        """Rich markup in a process name is printed literally."""
        events.process_enforced("[bold]x", 7, 0x80, "idle", {Reason.PRIORITY})
        assert "[bold]x" in capsys.readouterr().out


class TestDomainEvents:
    """Each helper emits one structured event with the same facts."""

    def test_process_enforced(self):
        with capture_logs() as logs:
            events.process_enforced(
                "worker.exe", 10, 0x80, "idle", {Reason.PRIORITY, Reason.AFFINITY}
            )

        assert logs == [
            {
                "event": "process_enforced",
                "log_level": "info",
                "name": "worker.exe",
                "pid": 10,
                "mask": "0x80",
                "priority": "idle",
                "reasons": ["affinity", "priority"],
            }
        ]

    def test_process_removed(self):
        entry = StateEntry(
            pid=10,
            name="worker.exe",
            last_affinity=0x80,
            last_priority=PriorityClass.IDLE,
            first_set_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        with capture_logs() as logs:
            events.process_removed(entry)

        [event] = logs
        assert event["event"] == "process_removed"
        assert event["pid"] == 10
        assert event["first_set_time"] == "2024-01-01T00:00:00+00:00"

    def test_banner_reports_policy(self):
        with capture_logs() as logs:
            events.banner("core-warden", "0.1.0", make_target(), cpu_count=8)

        [event] = logs
        assert event["event"] == "daemon_config"
        assert event["mask"] == "0x80"
        assert event["priority"] == "idle"
        assert event["process_names"] == ["worker"]
        assert event["cpu_count"] == 8

    def test_failures_are_warnings(self):
        with capture_logs() as logs:
            events.process_read_failed("w", 1, "denied")
            events.enforcement_failed("w", 1, "denied")

        assert [e["log_level"] for e in logs] == ["warning", "warning"]

    def test_heartbeat(self):
        with capture_logs() as logs:
            events.heartbeat(cycles=60, tracked=2, enforced=1, failed=0)

        assert logs[0]["event"] == "daemon_heartbeat"
        assert logs[0]["tracked"] == 2

    def test_already_running_without_pid(self):
        with capture_logs() as logs:
            events.already_running()

        assert logs[0]["event"] == "daemon_already_running"
        assert logs[0]["pid"] is None


class TestConfigure:
    """Tests for the JSON Lines file sink."""

    def test_writes_json_lines(self, configured):
        structlog.get_logger("test").info("sample", answer=42)
        for handler in _file_handlers():
            handler.flush()

        lines = configured.log_path.read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "sample"
        assert record["answer"] == 42
        assert record["level"] == "info"
        assert record["source"] == "daemon"
        assert "ts" in record

    def test_rotation_settings_applied(self, configured):
        [handler] = _file_handlers()
        assert handler.maxBytes == configured.system.log_max_bytes
        assert handler.backupCount == configured.system.log_backup_count

    def test_debug_is_filtered(self, configured):
        structlog.get_logger("test").debug("noise")
        for handler in _file_handlers():
            handler.flush()

        assert "noise" not in configured.log_path.read_text()


class TestConfigureQuiet:
    """Tests for the one-shot command configuration."""

    def test_drops_debug_and_routes_warnings_to_stderr(self, capsys):
        events.configure_quiet()
        try:
            structlog.get_logger("test").debug("noise", pid=5)
            structlog.get_logger("test").warning("loud", pid=6)
        finally:
            structlog.reset_defaults()

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "noise" not in captured.err
        assert "loud" in captured.err
