"""Data models shared by the collector, enforcer, state table and reconciler."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PriorityClass(str, Enum):
    """Scheduling priority tiers, lowest first.

    Values are the names used in the config file. Translation to what the OS
    understands (Windows priority classes, POSIX nice values) happens in
    core_warden.procs only.
    """

    IDLE = "idle"
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGH = "high"
    REALTIME = "realtime"

    @classmethod
    def parse(cls, value: str) -> "PriorityClass":
        """Parse a config value, accepting any case and '-' or ' ' separators."""
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = [p.value for p in cls]
            raise ValueError(f"Unknown priority class: {value!r}. Valid: {valid}") from None


class Reason(str, Enum):
    """Why a process was found non-compliant."""

    PRIORITY = "priority"
    AFFINITY = "affinity"


@dataclass(frozen=True)
class TargetConfiguration:
    """Policy applied to every monitored process. Built once at startup."""

    process_names: frozenset[str]
    interval_seconds: int
    core_selection: str
    verbose_already_compliant: bool
    target_priority: PriorityClass
    target_affinity_mask: int


@dataclass(frozen=True)
class ProcessObservation:
    """One monitored process as seen during a single cycle.

    read_error is set when the process is alive but its priority or affinity
    could not be read; priority and affinity_mask are None in that case.
    """

    pid: int
    name: str
    priority: PriorityClass | None
    affinity_mask: int | None
    read_error: str | None = None


@dataclass(frozen=True)
class Evaluation:
    """Compliance verdict for one observation."""

    compliant: bool
    reasons: frozenset[Reason] = frozenset()


@dataclass
class StateEntry:
    """Last-known-compliant metadata for a handled pid."""

    pid: int
    name: str
    last_affinity: int
    last_priority: PriorityClass
    first_set_time: datetime


@dataclass
class CycleReport:
    """Outcome of one reconciliation cycle."""

    alive: set[int] = field(default_factory=set)
    enforced: list[int] = field(default_factory=list)
    compliant: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    removed: list[StateEntry] = field(default_factory=list)
