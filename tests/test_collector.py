"""Tests for the process snapshot collector."""

from core_warden.models import PriorityClass


def test_collects_only_matching_names(table, collector):
    table.spawn(30, "Worker.EXE", PriorityClass.NORMAL, 0xFF)
    table.spawn(10, "worker", PriorityClass.IDLE, 0x80)
    table.spawn(20, "bystander.exe")

    result = collector.collect({"worker.exe"})

    assert [o.pid for o in result] == [10, 30]
    assert result[0].priority is PriorityClass.IDLE
    assert result[0].affinity_mask == 0x80
    assert result[1].name == "Worker.EXE"
    assert all(o.read_error is None for o in result)


def test_process_exiting_mid_read_is_excluded(table, collector):
    table.spawn(10, "worker.exe")
    table.spawn(11, "worker.exe")
    table.vanish_on_read.add(11)

    result = collector.collect({"worker"})

    assert [o.pid for o in result] == [10]


def test_access_denied_yields_unreadable_observation(table, collector):
    table.spawn(10, "worker.exe")
    table.read_errors[10] = PermissionError("access denied to process 10")

    [o] = collector.collect({"worker.exe"})

    assert o.pid == 10
    assert o.priority is None
    assert o.affinity_mask is None
    assert "access denied" in o.read_error


def test_collect_is_fresh_every_call(table, collector):
    table.spawn(10, "worker.exe")
    assert len(collector.collect({"worker.exe"})) == 1

    table.kill(10)
    table.spawn(12, "worker.exe")

    assert [o.pid for o in collector.collect({"worker.exe"})] == [12]


def test_no_matches_returns_empty_list(table, collector):
    table.spawn(1, "init")
    assert collector.collect({"worker.exe"}) == []
