"""Per-run stage state machine.

Each verification run owns one tracker. Transitions are validated against
ALLOWED_TRANSITIONS and recorded in the order they happen.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from truthstream.core.errors import FailureKind, StageTransitionError
from truthstream.utils.clock import utc_now
from truthstream.verification.models import (
    Proof,
    StageName,
    StageSnapshot,
    StageState,
    StageTransition,
)

EVIDENCE_STAGES: tuple[StageName, ...] = (
    StageName.LOCATION,
    StageName.PAYMENT,
    StageName.SOCIAL,
)

ALLOWED_TRANSITIONS: dict[StageState, frozenset[StageState]] = {
    StageState.PENDING: frozenset({StageState.RUNNING, StageState.FAILED}),
    StageState.RUNNING: frozenset({StageState.COMPLETED, StageState.FAILED}),
    StageState.COMPLETED: frozenset(),
    StageState.FAILED: frozenset(),
}


class StageTracker:
    """Explicit finite-state machine over the four stages of a run."""

    def __init__(
        self,
        run_id: str,
        on_transition: Callable[[StageTransition], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.run_id = run_id
        self._on_transition = on_transition
        self._clock = clock or utc_now
        self._snapshots: dict[StageName, StageSnapshot] = {
            stage: StageSnapshot(stage=stage, state=StageState.PENDING) for stage in StageName
        }
        self._transitions: list[StageTransition] = []

    # -- queries -------------------------------------------------------------

    def state(self, stage: StageName) -> StageState:
        return self._snapshots[stage].state

    def snapshot(self, stage: StageName) -> StageSnapshot:
        return self._snapshots[stage]

    def snapshots(self) -> dict[StageName, StageSnapshot]:
        return dict(self._snapshots)

    @property
    def transitions(self) -> tuple[StageTransition, ...]:
        return tuple(self._transitions)

    # -- transitions ---------------------------------------------------------

    def start(self, stage: StageName) -> StageTransition:
        return self._transition(stage, StageState.RUNNING)

    def complete(
        self,
        stage: StageName,
        proof: Proof | None = None,
        record_id: str | None = None,
    ) -> StageTransition:
        return self._transition(stage, StageState.COMPLETED, proof=proof, record_id=record_id)

    def fail(self, stage: StageName, failure: FailureKind) -> StageTransition:
        return self._transition(stage, StageState.FAILED, failure=failure)

    def cancel_open_stages(self) -> list[StageTransition]:
        """Mark every non-terminal stage Failed(cancelled)."""
        return [
            self.fail(stage, FailureKind.CANCELLED)
            for stage in StageName
            if not self.state(stage).is_terminal
        ]

    def _transition(
        self,
        stage: StageName,
        to_state: StageState,
        *,
        proof: Proof | None = None,
        failure: FailureKind | None = None,
        record_id: str | None = None,
    ) -> StageTransition:
        from_state = self.state(stage)
        if to_state not in ALLOWED_TRANSITIONS[from_state]:
            raise StageTransitionError(
                f"Illegal transition {from_state.value} -> {to_state.value}",
                stage=stage.value,
                details={"run_id": self.run_id},
            )
        if from_state == StageState.PENDING and failure not in (None, FailureKind.CANCELLED):
            raise StageTransitionError(
                "A pending stage can only fail through cancellation",
                stage=stage.value,
                details={"run_id": self.run_id, "failure": str(failure)},
            )

        self._snapshots[stage] = StageSnapshot(
            stage=stage,
            state=to_state,
            proof=proof,
            failure=failure,
            record_id=record_id,
        )
        transition = StageTransition(
            run_id=self.run_id,
            stage=stage,
            from_state=from_state,
            to_state=to_state,
            at=self._clock(),
            proof=proof,
            failure=failure,
            record_id=record_id,
        )
        self._transitions.append(transition)
        if self._on_transition is not None:
            self._on_transition(transition)
        return transition
