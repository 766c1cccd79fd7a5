"""Applies the target priority class and affinity mask to a process."""

from core_warden.errors import EnforcementError, ProcessGone
from core_warden.models import PriorityClass
from core_warden.procs import ProcessTable


class Enforcer:
    """Writes priority and affinity through a ProcessTable.

    The two writes are a best-effort pair: both are attempted, and a failure of
    one does not undo the other. Whatever deviation remains is picked up by the
    next cycle's evaluation.
    """

    def __init__(self, table: ProcessTable) -> None:
        self.table = table

    def enforce(self, pid: int, target_priority: PriorityClass, target_affinity_mask: int) -> None:
        """Set priority and affinity for pid.

        Raises:
            EnforcementError: One or both writes failed, including the process
                exiting mid-operation.
        """
        failures: list[tuple[str, BaseException]] = []

        try:
            self.table.set_priority(pid, target_priority)
        except ProcessGone as e:
            raise EnforcementError(pid, [("priority", e)]) from e
        except OSError as e:
            failures.append(("priority", e))

        try:
            self.table.set_affinity(pid, target_affinity_mask)
        except (ProcessGone, OSError) as e:
            failures.append(("affinity", e))

        if failures:
            raise EnforcementError(pid, failures) from failures[0][1]
