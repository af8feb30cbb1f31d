"""Unit tests for the stage state machine."""

from datetime import UTC, datetime

import pytest

from truthstream.core.errors import FailureKind, StageTransitionError
from truthstream.verification.models import StageName, StageState
from truthstream.verification.stages import StageTracker

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def tracker() -> StageTracker:
    return StageTracker("run-1", clock=lambda: NOW)


def test_all_stages_start_pending(tracker):
    assert {s: snap.state for s, snap in tracker.snapshots().items()} == {
        stage: StageState.PENDING for stage in StageName
    }
    assert tracker.transitions == ()


def test_happy_path(tracker):
    tracker.start(StageName.LOCATION)
    transition = tracker.complete(StageName.LOCATION)
    assert transition.from_state == StageState.RUNNING
    assert transition.to_state == StageState.COMPLETED
    assert transition.run_id == "run-1"
    assert transition.at == NOW
    assert tracker.state(StageName.LOCATION) == StageState.COMPLETED


def test_failure_carries_kind(tracker):
    tracker.start(StageName.PAYMENT)
    tracker.fail(StageName.PAYMENT, FailureKind.PROVIDER_TIMEOUT)
    snapshot = tracker.snapshot(StageName.PAYMENT)
    assert snapshot.state == StageState.FAILED
    assert snapshot.failure == FailureKind.PROVIDER_TIMEOUT


@pytest.mark.parametrize(
    "moves",
    [
        ["complete"],
        ["start", "start"],
        ["start", "complete", "start"],
        ["start", "complete", "fail"],
    ],
)
def test_illegal_transitions(tracker, moves):
    with pytest.raises(StageTransitionError):
        for move in moves:
            if move == "fail":
                tracker.fail(StageName.SOCIAL, FailureKind.PROVIDER_UNAVAILABLE)
            else:
                getattr(tracker, move)(StageName.SOCIAL)


def test_pending_stage_fails_only_through_cancellation(tracker):
    with pytest.raises(StageTransitionError):
        tracker.fail(StageName.LEDGER_RECORD, FailureKind.PROVIDER_UNAVAILABLE)
    tracker.fail(StageName.LEDGER_RECORD, FailureKind.CANCELLED)
    assert tracker.state(StageName.LEDGER_RECORD) == StageState.FAILED


def test_cancel_open_stages(tracker):
    tracker.start(StageName.LOCATION)
    tracker.complete(StageName.LOCATION)
    tracker.start(StageName.PAYMENT)

    cancelled = tracker.cancel_open_stages()

    assert [t.stage for t in cancelled] == [
        StageName.PAYMENT,
        StageName.SOCIAL,
        StageName.LEDGER_RECORD,
    ]
    assert tracker.state(StageName.LOCATION) == StageState.COMPLETED
    assert all(t.failure == FailureKind.CANCELLED for t in cancelled)
    assert all(tracker.state(stage).is_terminal for stage in StageName)


def test_on_transition_callback_in_order():
    seen = []
    tracker = StageTracker("run-1", on_transition=seen.append, clock=lambda: NOW)
    tracker.start(StageName.SOCIAL)
    tracker.start(StageName.LOCATION)
    tracker.complete(StageName.LOCATION)
    assert [(t.stage, t.to_state) for t in seen] == [
        (StageName.SOCIAL, StageState.RUNNING),
        (StageName.LOCATION, StageState.RUNNING),
        (StageName.LOCATION, StageState.COMPLETED),
    ]
    assert tuple(seen) == tracker.transitions
