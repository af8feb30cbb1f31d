"""Verdict aggregation - fold per-kind proofs into one verdict.

This module contains ZERO I/O. Pure function of the proofs and thresholds.
"""

from collections.abc import Mapping
from datetime import datetime

from truthstream.core.errors import FailureKind
from truthstream.verification.models import EVIDENCE_ORDER, EvidenceKind, Proof, Verdict

DEFAULT_MIN_VALID_PROOFS = 2
DEFAULT_CONFIDENCE_THRESHOLD = 0.70


def mean_valid_confidence(proofs: list[Proof]) -> float:
    """Mean confidence over valid proofs only; missing or invalid proofs never count as zero."""
    valid = [proof.confidence for proof in proofs if proof.valid]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


def build_verdict(
    experience_id: str,
    proofs: Mapping[EvidenceKind, Proof | None],
    decided_at: datetime,
    failures: Mapping[EvidenceKind, FailureKind] | None = None,
    *,
    min_valid_proofs: int = DEFAULT_MIN_VALID_PROOFS,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Verdict:
    """Aggregate proofs into a verdict.

    Args:
        experience_id: Claim being verified
        proofs: Proof per evidence kind; absent or None for failed kinds
        decided_at: Verdict timestamp
        failures: Failure kind per failed evidence kind
        min_valid_proofs: Minimum number of valid proofs for a verified verdict
        confidence_threshold: Mean confidence must be strictly above this

    Returns:
        Verdict with proofs in fixed declaration order
    """
    ordered: list[Proof] = []
    for kind in EVIDENCE_ORDER:
        proof = proofs.get(kind)
        if proof is not None:
            ordered.append(proof)

    mean = mean_valid_confidence(ordered)
    valid_count = sum(1 for proof in ordered if proof.valid)

    return Verdict(
        experience_id=experience_id,
        proofs=tuple(ordered),
        overall_confidence=round(mean, 6),
        verified=valid_count >= min_valid_proofs and mean > confidence_threshold,
        decided_at=decided_at,
        failures=dict(failures or {}),
    )
