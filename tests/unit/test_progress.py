"""Unit tests for progress dispatch."""

import asyncio
from datetime import UTC, datetime

import pytest

from truthstream.verification.models import StageName, StageState, StageTransition
from truthstream.verification.progress import (
    LoggingProgressSink,
    ProgressDispatcher,
    ProgressSink,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _transition(stage: StageName, to_state: StageState = StageState.RUNNING) -> StageTransition:
    return StageTransition(
        run_id="run-1",
        stage=stage,
        from_state=StageState.PENDING,
        to_state=to_state,
        at=NOW,
    )


class _RecordingSink(ProgressSink):
    def __init__(self):
        self.seen: list[StageTransition] = []

    def on_stage_transition(self, transition):
        self.seen.append(transition)


class _SlowAsyncSink(ProgressSink):
    def __init__(self, delay: float = 0.05):
        self.delay = delay
        self.seen: list[StageTransition] = []

    async def on_stage_transition(self, transition):
        await asyncio.sleep(self.delay)
        self.seen.append(transition)


class _FailingSink(ProgressSink):
    def __init__(self):
        self.calls = 0

    def on_stage_transition(self, transition):
        self.calls += 1
        raise RuntimeError("sink down")


@pytest.mark.asyncio
async def test_publish_does_not_block_on_slow_sink():
    sink = _SlowAsyncSink(delay=0.05)
    dispatcher = ProgressDispatcher(sink)

    dispatcher.publish(_transition(StageName.LOCATION))
    dispatcher.publish(_transition(StageName.PAYMENT))
    assert sink.seen == []

    await dispatcher.flush()
    assert [t.stage for t in sink.seen] == [StageName.LOCATION, StageName.PAYMENT]


@pytest.mark.asyncio
async def test_delivery_preserves_publish_order():
    sink = _RecordingSink()
    dispatcher = ProgressDispatcher(sink)
    stages = [StageName.SOCIAL, StageName.LOCATION, StageName.PAYMENT]
    for stage in stages:
        dispatcher.publish(_transition(stage))
    await dispatcher.flush()
    assert [t.stage for t in sink.seen] == stages


@pytest.mark.asyncio
async def test_sink_errors_are_swallowed():
    sink = _FailingSink()
    dispatcher = ProgressDispatcher(sink)
    dispatcher.publish(_transition(StageName.LOCATION))
    dispatcher.publish(_transition(StageName.PAYMENT))
    await dispatcher.flush()
    assert sink.calls == 2


@pytest.mark.asyncio
async def test_no_sink_is_a_noop():
    dispatcher = ProgressDispatcher(None)
    dispatcher.publish(_transition(StageName.LOCATION))
    await dispatcher.flush()


def test_logging_sink_handles_transition():
    sink = LoggingProgressSink()
    assert sink.on_stage_transition(_transition(StageName.LEDGER_RECORD)) is None
