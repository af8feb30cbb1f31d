"""Service wiring - settings, logging and owned clients for one process lifetime."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager

import structlog

from truthstream.clients.base import LedgerRecorder, ProviderClient
from truthstream.clients.ledger_client import HttpLedgerRecorder
from truthstream.core.config import get_settings
from truthstream.core.logging import setup_logging
from truthstream.persistence.experience_store import ExperienceStore
from truthstream.services.verification_service import ExperienceVerificationService
from truthstream.trust.trust_score import TrustScoreEngine
from truthstream.verification.models import EvidenceKind
from truthstream.verification.orchestrator import VerificationOrchestrator
from truthstream.verification.progress import ProgressSink

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def verification_service_context(
    providers: Mapping[EvidenceKind, ProviderClient],
    store: ExperienceStore,
    *,
    ledger: LedgerRecorder | None = None,
    progress_sink: ProgressSink | None = None,
) -> AsyncGenerator[ExperienceVerificationService]:
    """Configure logging and build the verification service from settings.

    Without an injected ledger an ``HttpLedgerRecorder`` is built from the
    ``LEDGER_*`` settings; it is owned by the context and closed on exit.
    """
    settings = get_settings()
    setup_logging()

    logger.info(
        "Starting experience verification service",
        app=settings.app.name,
        env=settings.app.env.value,
        version=settings.app.version,
    )

    owned_ledger: HttpLedgerRecorder | None = None
    if ledger is None:
        ledger = owned_ledger = HttpLedgerRecorder(settings.ledger)

    orchestrator = VerificationOrchestrator(
        providers,
        ledger,
        progress_sink=progress_sink,
        config=settings.verification,
    )
    service = ExperienceVerificationService(orchestrator, store, TrustScoreEngine(settings.trust))
    try:
        yield service
    finally:
        if owned_ledger is not None:
            await owned_ledger.close()
        logger.info("Experience verification service stopped")
