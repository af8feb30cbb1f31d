"""Experience verification pipeline: evidence, proofs, verdicts."""

from truthstream.verification.models import (
    Claim,
    EvidenceKind,
    Proof,
    StageName,
    StageState,
    StageTransition,
    Verdict,
)
from truthstream.verification.orchestrator import (
    RunStatus,
    VerificationOrchestrator,
    VerificationOutcome,
    VerificationRun,
)
from truthstream.verification.proof_generator import ProofGenerator

__all__ = [
    "Claim",
    "EvidenceKind",
    "Proof",
    "ProofGenerator",
    "RunStatus",
    "StageName",
    "StageState",
    "StageTransition",
    "Verdict",
    "VerificationOrchestrator",
    "VerificationOutcome",
    "VerificationRun",
]
