"""One reconciliation cycle: snapshot, evaluate, enforce, record, prune."""

from core_warden import logging as events
from core_warden.collector import ProcessCollector
from core_warden.compliance import evaluate
from core_warden.enforcer import Enforcer
from core_warden.errors import EnforcementError
from core_warden.models import CycleReport, ProcessObservation, TargetConfiguration
from core_warden.state import StateTable


def run_one_cycle(
    target: TargetConfiguration,
    state: StateTable,
    collector: ProcessCollector,
    enforcer: Enforcer,
) -> CycleReport:
    """Run a single reconciliation cycle and update state in place.

    Each process is handled independently: an unexpected error for one process
    is logged and the cycle moves on to the next. After all processes are
    handled, state entries for pids not seen alive this cycle are removed, so
    state.keys() is a subset of report.alive when this returns.

    Args:
        target: Policy to enforce
        state: State table owned by the caller, mutated in place
        collector: Source of this cycle's process observations
        enforcer: Applies priority/affinity to non-compliant processes

    Returns:
        What happened to each pid this cycle.
    """
    report = CycleReport()

    observations = collector.collect(target.process_names)
    report.alive = {o.pid for o in observations}

    for obs in observations:
        try:
            _reconcile_process(target, state, enforcer, obs, report)
        except Exception as e:
            report.failed.append(obs.pid)
            events.process_failed(obs.name, obs.pid, str(e))

    report.removed = state.prune_except(report.alive)
    for entry in report.removed:
        events.process_removed(entry)

    return report


def _reconcile_process(
    target: TargetConfiguration,
    state: StateTable,
    enforcer: Enforcer,
    obs: ProcessObservation,
    report: CycleReport,
) -> None:
    if obs.read_error is not None:
        # Alive but unreadable: leave any state entry alone, retry next cycle
        report.skipped.append(obs.pid)
        events.process_read_failed(obs.name, obs.pid, obs.read_error)
        return

    verdict = evaluate(obs, target.target_priority, target.target_affinity_mask)

    if not verdict.compliant:
        try:
            enforcer.enforce(obs.pid, target.target_priority, target.target_affinity_mask)
        except EnforcementError as e:
            report.failed.append(obs.pid)
            events.enforcement_failed(obs.name, obs.pid, str(e))
            return

        state.upsert(obs.pid, obs.name, target.target_affinity_mask, target.target_priority)
        report.enforced.append(obs.pid)
        events.process_enforced(
            obs.name,
            obs.pid,
            target.target_affinity_mask,
            target.target_priority.value,
            verdict.reasons,
        )
        return

    # Compliant: record for exit cleanup without touching first_set_time
    entry, inserted = state.ensure_recorded(
        obs.pid, obs.name, target.target_affinity_mask, target.target_priority
    )
    report.compliant.append(obs.pid)

    if target.verbose_already_compliant:
        if inserted:
            events.process_already_compliant(obs.name, obs.pid, target.target_affinity_mask)
        else:
            events.process_still_compliant(
                obs.name, obs.pid, target.target_affinity_mask, entry.first_set_time
            )
