"""Tests for compliance evaluation."""

import pytest

from core_warden.compliance import evaluate
from core_warden.models import PriorityClass, ProcessObservation, Reason


def obs(priority=PriorityClass.IDLE, mask=0x80, read_error=None) -> ProcessObservation:
    return ProcessObservation(
        pid=100, name="worker.exe", priority=priority, affinity_mask=mask, read_error=read_error
    )


def test_compliant_when_both_match():
    verdict = evaluate(obs(), PriorityClass.IDLE, 0x80)
    assert verdict.compliant is True
    assert verdict.reasons == frozenset()


def test_priority_drift():
    verdict = evaluate(obs(priority=PriorityClass.NORMAL), PriorityClass.IDLE, 0x80)
    assert verdict.compliant is False
    assert verdict.reasons == {Reason.PRIORITY}


def test_affinity_drift():
    verdict = evaluate(obs(mask=0xFF), PriorityClass.IDLE, 0x80)
    assert verdict.compliant is False
    assert verdict.reasons == {Reason.AFFINITY}


def test_both_drift():
    verdict = evaluate(obs(PriorityClass.HIGH, 0x01), PriorityClass.IDLE, 0x80)
    assert verdict.reasons == {Reason.PRIORITY, Reason.AFFINITY}


def test_superset_mask_is_not_compliant():
    """A mask that includes the target core plus others still drifts."""
    verdict = evaluate(obs(mask=0x81), PriorityClass.IDLE, 0x80)
    assert verdict.reasons == {Reason.AFFINITY}


def test_unreadable_observation_is_refused():
    with pytest.raises(ValueError, match="access denied"):
        evaluate(obs(None, None, read_error="access denied"), PriorityClass.IDLE, 0x80)


def test_evaluate_does_not_mutate_observation():
    o = obs(priority=PriorityClass.NORMAL)
    evaluate(o, PriorityClass.IDLE, 0x80)
    assert o.priority is PriorityClass.NORMAL
    assert o.affinity_mask == 0x80
