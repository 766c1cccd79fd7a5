"""In-memory table of processes the watchdog has already handled."""

from collections.abc import Callable, Iterable, Iterator
from datetime import datetime

from core_warden.models import PriorityClass, StateEntry


def _now() -> datetime:
    return datetime.now().astimezone()


class StateTable:
    """Maps pid to the metadata recorded when the pid was first handled.

    This is a cache of "have we seen this pid", not a source of truth about the
    OS. Owned by a single reconciler; no locking.
    """

    def __init__(self, clock: Callable[[], datetime] = _now) -> None:
        self._clock = clock
        self._entries: dict[int, StateEntry] = {}

    def __contains__(self, pid: object) -> bool:
        return pid in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[StateEntry]:
        return iter(list(self._entries.values()))

    def keys(self) -> set[int]:
        return set(self._entries)

    def get(self, pid: int) -> StateEntry | None:
        return self._entries.get(pid)

    def upsert(
        self, pid: int, name: str, affinity: int, priority: PriorityClass
    ) -> StateEntry:
        """Record pid after enforcement.

        Inserts with first_set_time = now when absent. When present, refreshes
        the last-known values but never first_set_time.
        """
        entry = self._entries.get(pid)
        if entry is None:
            entry = StateEntry(
                pid=pid,
                name=name,
                last_affinity=affinity,
                last_priority=priority,
                first_set_time=self._clock(),
            )
            self._entries[pid] = entry
        else:
            entry.name = name
            entry.last_affinity = affinity
            entry.last_priority = priority
        return entry

    def ensure_recorded(
        self, pid: int, name: str, affinity: int, priority: PriorityClass
    ) -> tuple[StateEntry, bool]:
        """Record pid if absent, leaving an existing entry untouched.

        Returns:
            (entry, inserted) where inserted is True if the entry is new.
        """
        entry = self._entries.get(pid)
        if entry is not None:
            return entry, False
        entry = StateEntry(
            pid=pid,
            name=name,
            last_affinity=affinity,
            last_priority=priority,
            first_set_time=self._clock(),
        )
        self._entries[pid] = entry
        return entry, True

    def prune_except(self, alive: Iterable[int]) -> list[StateEntry]:
        """Remove every entry whose pid is not in alive.

        Returns:
            The removed entries, ordered by pid.
        """
        alive_set = set(alive)
        gone = sorted(pid for pid in self._entries if pid not in alive_set)
        return [self._entries.pop(pid) for pid in gone]
