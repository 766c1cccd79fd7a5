"""Compliance decision for a single observed process."""

from core_warden.models import Evaluation, PriorityClass, ProcessObservation, Reason


def evaluate(
    observation: ProcessObservation,
    target_priority: PriorityClass,
    target_affinity_mask: int,
) -> Evaluation:
    """Compare an observation against the target priority and affinity.

    Observations with a read error must be skipped by the caller; passing one
    here is a programming error.
    """
    if observation.read_error is not None:
        raise ValueError(
            f"Cannot evaluate process {observation.pid}: {observation.read_error}"
        )

    reasons = set()
    if observation.priority != target_priority:
        reasons.add(Reason.PRIORITY)
    if observation.affinity_mask != target_affinity_mask:
        reasons.add(Reason.AFFINITY)

    return Evaluation(compliant=not reasons, reasons=frozenset(reasons))
