"""Progress reporting - fire-and-forget delivery of stage transitions."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable

import structlog

from truthstream.verification.models import StageTransition

logger = structlog.get_logger(__name__)


class ProgressSink(ABC):
    """Observer of stage transitions (UI, log, notification collaborator).

    Contract:
    - MAY be sync or async
    - MUST NOT expect the orchestrator to wait for it
    """

    @abstractmethod
    def on_stage_transition(self, transition: StageTransition) -> Awaitable[None] | None:
        """Handle one transition."""
        ...


class LoggingProgressSink(ProgressSink):
    """Log every transition as a structured event."""

    def __init__(self, event: str = "verification_stage_transition"):
        self._event = event

    def on_stage_transition(self, transition: StageTransition) -> None:
        logger.info(
            self._event,
            run_id=transition.run_id,
            stage=transition.stage.value,
            from_state=transition.from_state.value,
            to_state=transition.to_state.value,
            confidence=transition.proof.confidence if transition.proof else None,
            failure=transition.failure.value if transition.failure else None,
            record_id=transition.record_id,
        )


class ProgressDispatcher:
    """Deliver transitions to a sink in publish order without blocking the publisher.

    Transitions are queued synchronously and drained by a background task;
    a single drain task runs at a time so delivery order matches publish order.
    Sink failures are logged and swallowed.
    """

    def __init__(self, sink: ProgressSink | None):
        self._sink = sink
        self._pending: deque[StageTransition] = deque()
        self._task: asyncio.Task[None] | None = None

    def publish(self, transition: StageTransition) -> None:
        if self._sink is None:
            return
        self._pending.append(transition)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def flush(self) -> None:
        """Wait until every published transition has been delivered."""
        while self._task is not None and not self._task.done():
            await self._task

    async def _drain(self) -> None:
        while self._pending:
            transition = self._pending.popleft()
            try:
                result = self._sink.on_stage_transition(transition)  # type: ignore[union-attr]
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "progress_sink_failed",
                    run_id=transition.run_id,
                    stage=transition.stage.value,
                    to_state=transition.to_state.value,
                )
