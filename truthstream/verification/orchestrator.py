"""Verification orchestrator - concurrent evidence stages, aggregation, ledger recording.

Each run fans the three evidence stages out as independent asyncio tasks,
joins them explicitly, aggregates a Verdict and, for verified verdicts,
records it through the injected LedgerRecorder.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog
from opentelemetry import trace

from truthstream.clients.base import LedgerRecorder, ProviderClient
from truthstream.core.config import VerificationConfig, get_settings
from truthstream.core.errors import (
    FailureKind,
    LedgerRecordingFailedError,
    ProviderUnavailableError,
    VerificationError,
    failure_kind_of,
)
from truthstream.core.metrics import (
    truthstream_ledger_records_total,
    truthstream_stage_latency_seconds,
    truthstream_stage_outcomes_total,
    truthstream_verification_latency_seconds,
    truthstream_verification_runs_total,
)
from truthstream.utils.clock import utc_now
from truthstream.verification.aggregation import build_verdict
from truthstream.verification.collectors import EvidenceCollector, default_collectors
from truthstream.verification.models import (
    EVIDENCE_ORDER,
    Claim,
    EvidenceKind,
    Proof,
    StageName,
    StageSnapshot,
    StageTransition,
    Verdict,
)
from truthstream.verification.progress import ProgressDispatcher, ProgressSink
from truthstream.verification.proof_generator import ProofGenerator
from truthstream.verification.stages import EVIDENCE_STAGES, StageTracker

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class RunStatus(StrEnum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class VerificationOutcome:
    """What a caller gets back from a run, whatever happened.

    ``verdict`` is None only for cancelled runs. ``ledger_error`` is set when a
    verified verdict could not be recorded; the verdict is still returned.
    """

    run_id: str
    experience_id: str
    status: RunStatus
    stages: dict[StageName, StageSnapshot]
    transitions: tuple[StageTransition, ...]
    verdict: Verdict | None = None
    record_id: str | None = None
    ledger_error: LedgerRecordingFailedError | None = None
    duration_ms: float = field(default=0.0, compare=False)

    @property
    def verified(self) -> bool:
        return self.verdict is not None and self.verdict.verified

    @property
    def recorded(self) -> bool:
        return self.record_id is not None

    @property
    def cancelled(self) -> bool:
        return self.status == RunStatus.CANCELLED


def _observe_stage(
    stage: StageName, t0: float, state: str, failure: FailureKind | None = None
) -> None:
    truthstream_stage_latency_seconds.labels(stage=stage.value).observe(time.perf_counter() - t0)
    truthstream_stage_outcomes_total.labels(
        stage=stage.value, state=state, failure=failure.value if failure else ""
    ).inc()


class VerificationRun:
    """One verification run. Owns all of its state; nothing is shared across runs."""

    def __init__(
        self,
        *,
        claim: Claim,
        collectors: Mapping[EvidenceKind, EvidenceCollector],
        providers: Mapping[EvidenceKind, ProviderClient],
        ledger: LedgerRecorder,
        timeouts: Mapping[StageName, float],
        min_valid_proofs: int,
        confidence_threshold: float,
        progress_sink: ProgressSink | None = None,
        clock: Callable[[], datetime] | None = None,
        run_id: str | None = None,
    ):
        self.run_id = run_id or str(uuid.uuid4())
        self.claim = claim
        self._collectors = collectors
        self._providers = providers
        self._ledger = ledger
        self._timeouts = timeouts
        self._min_valid_proofs = min_valid_proofs
        self._confidence_threshold = confidence_threshold
        self._clock = clock or utc_now
        self._progress = ProgressDispatcher(progress_sink)
        self.tracker = StageTracker(
            self.run_id, on_transition=self._progress.publish, clock=self._clock
        )

        self._proofs: dict[EvidenceKind, Proof] = {}
        self._failures: dict[EvidenceKind, FailureKind] = {}
        self._cancel_event = asyncio.Event()
        self._closed = False
        self._decided = False
        self._inflight: set[asyncio.Task[Any]] = set()
        self._task: asyncio.Task[VerificationOutcome] | None = None
        self._log = logger.bind(run_id=self.run_id, experience_id=claim.experience_id)

    # -- caller API -----------------------------------------------------------

    def launch(self) -> VerificationRun:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._drive(), name=f"verification-{self.run_id}"
            )
        return self

    def cancel(self) -> None:
        """Cancel the run as a whole.

        Before the verdict is decided, dispatched provider calls keep running in
        the background; their results are discarded and no Verdict is produced.
        Once the verdict is decided the run is past its cancellation point: the
        ledger call runs to completion and the outcome carries its record id.
        """
        if self._decided:
            self._log.info("verification_cancel_ignored", reason="verdict_decided")
            return
        self._cancel_event.set()

    async def wait(self) -> VerificationOutcome:
        if self._task is None:
            self.launch()
        return await self._task  # type: ignore[misc]

    async def drain(self) -> None:
        """Wait for abandoned in-flight calls and pending progress deliveries."""
        while self._inflight:
            await asyncio.wait(set(self._inflight))
        await self._progress.flush()

    @property
    def transitions(self) -> tuple[StageTransition, ...]:
        return self.tracker.transitions

    # -- driver ---------------------------------------------------------------

    async def _drive(self) -> VerificationOutcome:
        started = time.perf_counter()
        with tracer.start_as_current_span("truthstream.verification") as span:
            span.set_attribute("run.id", self.run_id)
            span.set_attribute("experience.id", self.claim.experience_id)
            try:
                if self._cancel_event.is_set():
                    return self._cancelled(started, span)

                # All evidence stages go Running together before any I/O starts.
                for stage in EVIDENCE_STAGES:
                    self.tracker.start(stage)
                stage_tasks = {
                    self._dispatch(self._run_evidence_stage(kind)) for kind in EVIDENCE_ORDER
                }
                if not await self._join(stage_tasks):
                    return self._cancelled(started, span)

                verdict = build_verdict(
                    self.claim.experience_id,
                    self._proofs,
                    decided_at=self._clock(),
                    failures=self._failures,
                    min_valid_proofs=self._min_valid_proofs,
                    confidence_threshold=self._confidence_threshold,
                )
                self._decided = True
                span.set_attribute("verdict.verified", verdict.verified)
                span.set_attribute("verdict.confidence", verdict.overall_confidence)

                record_id: str | None = None
                ledger_error: LedgerRecordingFailedError | None = None
                if verdict.verified:
                    record_id, ledger_error = await self._record(verdict)

                status = RunStatus.VERIFIED if verdict.verified else RunStatus.UNVERIFIED
                return self._finish(
                    status,
                    started,
                    span,
                    verdict=verdict,
                    record_id=record_id,
                    ledger_error=ledger_error,
                )
            except asyncio.CancelledError:
                # Cancelled from outside (the awaiting task was cancelled).
                self._abandon()
                truthstream_verification_runs_total.labels(status=RunStatus.CANCELLED.value).inc()
                span.set_attribute("run.status", RunStatus.CANCELLED.value)
                self._log.info("verification_run_cancelled", source="task")
                raise

    async def _join(self, tasks: set[asyncio.Task[Any]]) -> bool:
        """Wait for every task. Returns False if the run was cancelled first."""
        waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            while True:
                if self._cancel_event.is_set():
                    return False
                open_tasks = {task for task in tasks if not task.done()}
                if not open_tasks:
                    return True
                await asyncio.wait({*open_tasks, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

    def _dispatch(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    # -- evidence stages ------------------------------------------------------

    async def _run_evidence_stage(self, kind: EvidenceKind) -> None:
        stage = StageName(kind.value)
        timeout = self._timeouts[stage]
        t0 = time.perf_counter()
        with tracer.start_as_current_span(f"truthstream.stage.{stage.value}") as span:
            try:
                provider = self._providers.get(kind)
                if provider is None:
                    raise ProviderUnavailableError(
                        f"No {kind.value} provider configured",
                        details={"kind": kind.value},
                    )
                async with asyncio.timeout(timeout):
                    proof = await self._collectors[kind].collect(self.claim, provider)
            except (TimeoutError, VerificationError) as e:
                span.record_exception(e)
                self._settle_failure(kind, failure_kind_of(e), t0, str(e))
            except Exception as e:
                span.record_exception(e)
                self._log.exception("evidence_stage_crashed", stage=stage.value)
                self._settle_failure(kind, FailureKind.PROVIDER_UNAVAILABLE, t0, str(e))
            else:
                self._settle_success(kind, proof, t0)

    def _settle_success(self, kind: EvidenceKind, proof: Proof, t0: float) -> None:
        stage = StageName(kind.value)
        if self._closed:
            self._log.info("stage_result_discarded", stage=stage.value, outcome="completed")
            return
        _observe_stage(stage, t0, "completed")
        self._proofs[kind] = proof
        self.tracker.complete(stage, proof=proof)

    def _settle_failure(
        self, kind: EvidenceKind, failure: FailureKind, t0: float, error: str
    ) -> None:
        stage = StageName(kind.value)
        if self._closed:
            self._log.info("stage_result_discarded", stage=stage.value, outcome=failure.value)
            return
        _observe_stage(stage, t0, "failed", failure)
        self._failures[kind] = failure
        self.tracker.fail(stage, failure)
        self._log.warning(
            "evidence_stage_failed", stage=stage.value, failure=failure.value, error=error
        )

    # -- ledger stage ---------------------------------------------------------

    async def _record(
        self, verdict: Verdict
    ) -> tuple[str | None, LedgerRecordingFailedError | None]:
        """Record a verified verdict. Caller cancellation no longer applies here."""
        stage = StageName.LEDGER_RECORD
        self.tracker.start(stage)
        t0 = time.perf_counter()
        task = self._dispatch(self._call_ledger(verdict))
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The ledger call keeps running; surface its record id if it lands.
            task.add_done_callback(self._report_orphaned_record)
            raise

        error = task.exception()
        if error is None:
            record_id = str(task.result())
            truthstream_ledger_records_total.labels(status="success").inc()
            _observe_stage(stage, t0, "completed")
            self.tracker.complete(stage, record_id=record_id)
            return record_id, None

        if isinstance(error, LedgerRecordingFailedError):
            ledger_error = error
        elif isinstance(error, TimeoutError):
            ledger_error = LedgerRecordingFailedError(
                "Ledger recording timed out",
                details={"timeout_seconds": self._timeouts[stage]},
            )
        else:
            ledger_error = LedgerRecordingFailedError(
                f"Ledger recording failed: {error}",
                details={"error_type": type(error).__name__},
            )
        truthstream_ledger_records_total.labels(status="error").inc()
        _observe_stage(stage, t0, "failed", FailureKind.LEDGER_RECORDING_FAILED)
        self.tracker.fail(stage, FailureKind.LEDGER_RECORDING_FAILED)
        self._log.warning("ledger_recording_failed", error=ledger_error.message)
        return None, ledger_error

    async def _call_ledger(self, verdict: Verdict) -> str:
        async with asyncio.timeout(self._timeouts[StageName.LEDGER_RECORD]):
            return await self._ledger.record(verdict)

    def _report_orphaned_record(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        self._log.warning("ledger_record_orphaned", record_id=str(task.result()))

    # -- outcomes -------------------------------------------------------------

    def _abandon(self) -> None:
        self._closed = True
        self.tracker.cancel_open_stages()

    def _cancelled(self, started: float, span: trace.Span) -> VerificationOutcome:
        self._abandon()
        self._log.info("verification_run_cancelled", source="caller", inflight=len(self._inflight))
        return self._finish(RunStatus.CANCELLED, started, span)

    def _finish(
        self,
        status: RunStatus,
        started: float,
        span: trace.Span,
        *,
        verdict: Verdict | None = None,
        record_id: str | None = None,
        ledger_error: LedgerRecordingFailedError | None = None,
    ) -> VerificationOutcome:
        self._closed = True
        elapsed = time.perf_counter() - started
        truthstream_verification_runs_total.labels(status=status.value).inc()
        truthstream_verification_latency_seconds.observe(elapsed)
        span.set_attribute("run.status", status.value)
        span.set_attribute("run.duration_ms", round(elapsed * 1000, 1))
        self._log.info(
            "verification_run_finished",
            status=status.value,
            confidence=verdict.overall_confidence if verdict else None,
            record_id=record_id,
            ledger_error=ledger_error.message if ledger_error else None,
            duration_ms=round(elapsed * 1000, 1),
        )
        return VerificationOutcome(
            run_id=self.run_id,
            experience_id=self.claim.experience_id,
            status=status,
            stages=self.tracker.snapshots(),
            transitions=self.tracker.transitions,
            verdict=verdict,
            record_id=record_id,
            ledger_error=ledger_error,
            duration_ms=round(elapsed * 1000, 1),
        )


class VerificationOrchestrator:
    """Drive verification runs with injected providers and ledger."""

    def __init__(
        self,
        providers: Mapping[EvidenceKind, ProviderClient],
        ledger: LedgerRecorder,
        *,
        collectors: Mapping[EvidenceKind, EvidenceCollector] | None = None,
        proof_generator: ProofGenerator | None = None,
        progress_sink: ProgressSink | None = None,
        config: VerificationConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or get_settings().verification
        self.providers = dict(providers)
        self.ledger = ledger
        self.collectors = dict(collectors or default_collectors(proof_generator))
        self.progress_sink = progress_sink
        self._clock = clock or utc_now
        self.timeouts = {stage: self.config.timeout_for(stage.value) for stage in StageName}

    def start(self, claim: Claim, *, progress_sink: ProgressSink | None = None) -> VerificationRun:
        """Launch a run in the background and return its handle. Requires a running loop."""
        return VerificationRun(
            claim=claim,
            collectors=self.collectors,
            providers=self.providers,
            ledger=self.ledger,
            timeouts=self.timeouts,
            min_valid_proofs=self.config.min_valid_proofs,
            confidence_threshold=self.config.confidence_threshold,
            progress_sink=progress_sink or self.progress_sink,
            clock=self._clock,
        ).launch()

    async def verify(self, claim: Claim) -> VerificationOutcome:
        """Run a verification to completion."""
        return await self.start(claim).wait()
