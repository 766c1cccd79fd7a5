"""OS process primitives: enumerate by name, read/write priority class and CPU affinity.

Everything above this module speaks PriorityClass and integer masks. This is the
only place that knows about psutil's priority constants, nice values, and
CPU-index lists.
"""

import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import NamedTuple, Protocol

import psutil

from core_warden.cores import cpus_to_mask, mask_to_cpus
from core_warden.errors import ConfigurationError, ProcessGone
from core_warden.models import PriorityClass

IS_WINDOWS = os.name == "nt"

# POSIX nice value written for each class. Reading maps a nice value back to the
# class whose band contains it (see _class_from_nice).
NICE_VALUES = {
    PriorityClass.IDLE: 19,
    PriorityClass.BELOW_NORMAL: 10,
    PriorityClass.NORMAL: 0,
    PriorityClass.ABOVE_NORMAL: -5,
    PriorityClass.HIGH: -10,
    PriorityClass.REALTIME: -20,
}

# psutil attribute names of the Windows priority class constants
_WINDOWS_CLASS_NAMES = {
    PriorityClass.IDLE: "IDLE_PRIORITY_CLASS",
    PriorityClass.BELOW_NORMAL: "BELOW_NORMAL_PRIORITY_CLASS",
    PriorityClass.NORMAL: "NORMAL_PRIORITY_CLASS",
    PriorityClass.ABOVE_NORMAL: "ABOVE_NORMAL_PRIORITY_CLASS",
    PriorityClass.HIGH: "HIGH_PRIORITY_CLASS",
    PriorityClass.REALTIME: "REALTIME_PRIORITY_CLASS",
}


class ProcessRef(NamedTuple):
    """A live process found by name."""

    pid: int
    name: str


class ProcessTable(Protocol):
    """OS process table as seen by the collector and enforcer.

    Methods raise ProcessGone when the pid no longer exists. Other failures
    surface as OSError (PermissionError when access is denied).
    """

    def iter_named(self, names: Iterable[str]) -> Iterator[ProcessRef]: ...

    def get_priority(self, pid: int) -> PriorityClass: ...

    def set_priority(self, pid: int, priority: PriorityClass) -> None: ...

    def get_affinity(self, pid: int) -> int: ...

    def set_affinity(self, pid: int, mask: int) -> None: ...

    def cpu_count(self) -> int: ...


def normalize_name(name: str) -> str:
    """Canonical form for name matching: lower case, no trailing '.exe'."""
    name = name.strip().lower()
    if name.endswith(".exe"):
        name = name[: -len(".exe")]
    return name


def _class_from_nice(nice: int) -> PriorityClass:
    if nice >= NICE_VALUES[PriorityClass.IDLE]:
        return PriorityClass.IDLE
    if nice > NICE_VALUES[PriorityClass.NORMAL]:
        return PriorityClass.BELOW_NORMAL
    if nice == NICE_VALUES[PriorityClass.NORMAL]:
        return PriorityClass.NORMAL
    if nice > NICE_VALUES[PriorityClass.HIGH]:
        return PriorityClass.ABOVE_NORMAL
    if nice > NICE_VALUES[PriorityClass.REALTIME]:
        return PriorityClass.HIGH
    return PriorityClass.REALTIME


def _windows_value(priority: PriorityClass) -> int:
    return int(getattr(psutil, _WINDOWS_CLASS_NAMES[priority]))


def _class_from_windows(value: int) -> PriorityClass:
    for priority in PriorityClass:
        if _windows_value(priority) == int(value):
            return priority
    raise OSError(f"Unrecognized Windows priority class value: {value!r}")


def to_os_priority(priority: PriorityClass) -> int:
    """Value passed to psutil.Process.nice() for a class on this platform."""
    if IS_WINDOWS:
        return _windows_value(priority)
    return NICE_VALUES[priority]


def from_os_priority(value: int) -> PriorityClass:
    """Class for a value returned by psutil.Process.nice() on this platform."""
    if IS_WINDOWS:
        return _class_from_windows(value)
    return _class_from_nice(int(value))


@contextmanager
def _os_errors(pid: int) -> Iterator[None]:
    """Translate psutil exceptions for one pid into ProcessGone / PermissionError."""
    try:
        yield
    except psutil.NoSuchProcess:
        # ZombieProcess is a NoSuchProcess too: a zombie cannot be reconfigured
        raise ProcessGone(pid) from None
    except psutil.AccessDenied as e:
        raise PermissionError(f"access denied to process {pid}") from e


class PsutilProcessTable:
    """ProcessTable backed by psutil."""

    def __init__(self) -> None:
        if not hasattr(psutil.Process, "cpu_affinity"):
            raise ConfigurationError(
                "CPU affinity is not supported on this platform (psutil has no cpu_affinity)"
            )

    def iter_named(self, names: Iterable[str]) -> Iterator[ProcessRef]:
        wanted = {normalize_name(n) for n in names}
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info.get("name")
            if not name or normalize_name(name) not in wanted:
                continue
            yield ProcessRef(pid=proc.info["pid"], name=name)

    def get_priority(self, pid: int) -> PriorityClass:
        with _os_errors(pid):
            return from_os_priority(psutil.Process(pid).nice())

    def set_priority(self, pid: int, priority: PriorityClass) -> None:
        with _os_errors(pid):
            psutil.Process(pid).nice(to_os_priority(priority))

    def get_affinity(self, pid: int) -> int:
        with _os_errors(pid):
            return cpus_to_mask(psutil.Process(pid).cpu_affinity())

    def set_affinity(self, pid: int, mask: int) -> None:
        with _os_errors(pid):
            psutil.Process(pid).cpu_affinity(mask_to_cpus(mask))

    def cpu_count(self) -> int:
        count = psutil.cpu_count(logical=True)
        if count is None or count < 1:
            raise ConfigurationError(f"Cannot determine logical core count (got {count!r})")
        return count
