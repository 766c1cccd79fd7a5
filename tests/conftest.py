"""Shared test fixtures for core-warden."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from core_warden.collector import ProcessCollector
from core_warden.enforcer import Enforcer
from core_warden.errors import ProcessGone
from core_warden.models import PriorityClass, TargetConfiguration
from core_warden.procs import ProcessRef, normalize_name
from core_warden.state import StateTable


@dataclass
class FakeProcess:
    """A process living in FakeProcessTable."""

    pid: int
    name: str
    priority: PriorityClass = PriorityClass.NORMAL
    affinity: int = 0xFF


class FakeProcessTable:
    """In-memory ProcessTable that records every write.

    read_errors / write_errors map pid (or (attr, pid)) to the exception the
    next read / write should raise. Pids in vanish_on_read are enumerated but
    raise ProcessGone when read, as if they exited in between.
    """

    def __init__(self, cpus: int = 8) -> None:
        self.cpus = cpus
        self.procs: dict[int, FakeProcess] = {}
        self.writes: list[tuple[str, int, object]] = []
        self.read_errors: dict[int, Exception] = {}
        self.write_errors: dict[tuple[str, int], Exception] = {}
        self.vanish_on_read: set[int] = set()

    def spawn(
        self,
        pid: int,
        name: str,
        priority: PriorityClass = PriorityClass.NORMAL,
        affinity: int = 0xFF,
    ) -> FakeProcess:
        proc = FakeProcess(pid=pid, name=name, priority=priority, affinity=affinity)
        self.procs[pid] = proc
        return proc

    def kill(self, pid: int) -> None:
        del self.procs[pid]

    def _get(self, pid: int) -> FakeProcess:
        if pid in self.vanish_on_read or pid not in self.procs:
            raise ProcessGone(pid)
        return self.procs[pid]

    def iter_named(self, names: Iterable[str]) -> Iterator[ProcessRef]:
        wanted = {normalize_name(n) for n in names}
        for proc in list(self.procs.values()):
            if normalize_name(proc.name) in wanted:
                yield ProcessRef(pid=proc.pid, name=proc.name)

    def get_priority(self, pid: int) -> PriorityClass:
        proc = self._get(pid)
        if pid in self.read_errors:
            raise self.read_errors[pid]
        return proc.priority

    def get_affinity(self, pid: int) -> int:
        proc = self._get(pid)
        if pid in self.read_errors:
            raise self.read_errors[pid]
        return proc.affinity

    def set_priority(self, pid: int, priority: PriorityClass) -> None:
        if ("priority", pid) in self.write_errors:
            raise self.write_errors[("priority", pid)]
        proc = self._get(pid)
        self.writes.append(("priority", pid, priority))
        proc.priority = priority

    def set_affinity(self, pid: int, mask: int) -> None:
        if ("affinity", pid) in self.write_errors:
            raise self.write_errors[("affinity", pid)]
        proc = self._get(pid)
        self.writes.append(("affinity", pid, mask))
        proc.affinity = mask

    def cpu_count(self) -> int:
        return self.cpus


class StepClock:
    """Deterministic clock: each call returns one second later than the last."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_target(
    names: Iterable[str] = ("worker.exe",),
    mask: int = 0x80,
    priority: PriorityClass = PriorityClass.IDLE,
    verbose: bool = False,
    interval: int = 5,
) -> TargetConfiguration:
    """Create a TargetConfiguration for testing."""
    return TargetConfiguration(
        process_names=frozenset(normalize_name(n) for n in names),
        interval_seconds=interval,
        core_selection="Last",
        verbose_already_compliant=verbose,
        target_priority=priority,
        target_affinity_mask=mask,
    )


@pytest.fixture
def table() -> FakeProcessTable:
    """An empty fake process table with 8 logical cores."""
    return FakeProcessTable(cpus=8)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def state(clock: StepClock) -> StateTable:
    """A fresh state table driven by the step clock."""
    return StateTable(clock=clock)


@pytest.fixture
def collector(table: FakeProcessTable) -> ProcessCollector:
    return ProcessCollector(table)


@pytest.fixture
def enforcer(table: FakeProcessTable) -> Enforcer:
    return Enforcer(table)
