"""Experience verification service - claim to verdict to trust score."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from truthstream.persistence.experience_store import ExperienceStore
from truthstream.trust.trust_score import TrustScoreEngine
from truthstream.verification.models import Claim
from truthstream.verification.orchestrator import VerificationOrchestrator, VerificationOutcome

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExperienceVerificationResult:
    outcome: VerificationOutcome
    persisted: bool
    trust_score: int | None = None
    resubmit: bool = False


class ExperienceVerificationService:
    """Run a verification and, once the verdict is durably recorded, refresh the trust score.

    Storage is only touched after the ledger returned a record id: unverified,
    cancelled and ledger-failed runs leave the user's history and score as they were.
    A retryable ledger failure sets ``resubmit`` so the caller can submit the claim again.
    """

    def __init__(
        self,
        orchestrator: VerificationOrchestrator,
        store: ExperienceStore,
        trust_engine: TrustScoreEngine | None = None,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.trust_engine = trust_engine or TrustScoreEngine()

    async def verify_experience(self, claim: Claim) -> ExperienceVerificationResult:
        outcome = await self.orchestrator.verify(claim)

        if outcome.verdict is None or outcome.record_id is None:
            ledger_error = outcome.ledger_error
            resubmit = ledger_error is not None and ledger_error.retryable
            logger.info(
                "experience_not_persisted",
                experience_id=claim.experience_id,
                status=outcome.status.value,
                ledger_error=ledger_error.message if ledger_error else None,
                resubmit=resubmit,
            )
            return ExperienceVerificationResult(outcome=outcome, persisted=False, resubmit=resubmit)

        await self.store.save_verdict(claim, outcome.verdict, outcome.record_id)
        score = await self.recompute_trust_score(claim.user_id)
        return ExperienceVerificationResult(outcome=outcome, persisted=True, trust_score=score)

    async def recompute_trust_score(self, user_id: str) -> int:
        """Recompute the user's trust score from their full history and store it."""
        history = await self.store.load_history(user_id)
        score = self.trust_engine.compute(history)
        await self.store.update_trust_score(user_id, score)
        logger.info("trust_score_updated", user_id=user_id, score=score, entries=len(history))
        return score
