"""Per-cycle snapshot of the monitored processes."""

from collections.abc import Iterable

import structlog

from core_warden.errors import ProcessGone, TransientReadError
from core_warden.models import ProcessObservation
from core_warden.procs import ProcessTable

log = structlog.get_logger()


class ProcessCollector:
    """Finds live processes by name and reads their priority and affinity.

    Every call to collect() queries the OS afresh; nothing is cached.
    """

    def __init__(self, table: ProcessTable) -> None:
        self.table = table

    def collect(self, names: Iterable[str]) -> list[ProcessObservation]:
        """Observe every live process whose name matches one of names.

        Processes that exit before their attributes are read are left out.
        Processes whose attributes cannot be read for any other reason are
        returned with read_error set, so they still count as alive.

        Returns:
            Observations ordered by pid.
        """
        observations: list[ProcessObservation] = []

        for ref in self.table.iter_named(names):
            try:
                priority = self.table.get_priority(ref.pid)
                affinity = self.table.get_affinity(ref.pid)
            except ProcessGone:
                log.debug("process_vanished", pid=ref.pid, name=ref.name)
                continue
            except OSError as e:
                err = TransientReadError(ref.pid, e)
                observations.append(
                    ProcessObservation(
                        pid=ref.pid,
                        name=ref.name,
                        priority=None,
                        affinity_mask=None,
                        read_error=str(err),
                    )
                )
                continue

            observations.append(
                ProcessObservation(
                    pid=ref.pid,
                    name=ref.name,
                    priority=priority,
                    affinity_mask=affinity,
                )
            )

        observations.sort(key=lambda o: o.pid)
        return observations
