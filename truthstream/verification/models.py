"""Verification data model.

Every record here is immutable. Proofs are handed from the collector that
creates them to the Verdict that aggregates them; nothing mutates them in
place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from truthstream.core.errors import FailureKind


class EvidenceKind(StrEnum):
    """Independent corroboration channel. Declaration order is the proof order."""

    LOCATION = "location"
    PAYMENT = "payment"
    SOCIAL = "social"


EVIDENCE_ORDER: tuple[EvidenceKind, ...] = tuple(EvidenceKind)


class ExperienceType(StrEnum):
    MEAL = "meal"
    PURCHASE = "purchase"
    EVENT = "event"
    OTHER = "other"


class StageName(StrEnum):
    LOCATION = "location"
    PAYMENT = "payment"
    SOCIAL = "social"
    LEDGER_RECORD = "ledger_record"


class StageState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StageState.COMPLETED, StageState.FAILED)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Claim:
    """A user-submitted claim about a real-world experience."""

    experience_id: str
    user_id: str
    occurred_at: datetime
    experience_type: ExperienceType = ExperienceType.OTHER
    title: str = ""
    place: str = ""
    description: str = ""
    estimated_amount: float | None = None
    social_post_ref: str | None = None


# ---------------------------------------------------------------------------
# Evidence inputs (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocationEvidence:
    latitude: float
    longitude: float
    accuracy_meters: float
    captured_at: datetime

    kind = EvidenceKind.LOCATION


@dataclass(frozen=True)
class PaymentEvidence:
    merchant_ref: str
    claimed_amount: float
    captured_at: datetime
    attested_amount: float | None = None
    merchant_verified: bool = False

    kind = EvidenceKind.PAYMENT


@dataclass(frozen=True)
class SocialEvidence:
    platform: str
    post_ref: str
    claimed_engagement: int
    captured_at: datetime

    kind = EvidenceKind.SOCIAL


EvidenceInput = LocationEvidence | PaymentEvidence | SocialEvidence


# ---------------------------------------------------------------------------
# Proofs and verdicts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Proof:
    """Hashed, timestamped, confidence-scored attestation for one piece of evidence."""

    kind: EvidenceKind
    data_hash: str
    proof_hash: str
    confidence: float
    generated_at: datetime
    valid: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "data_hash": self.data_hash,
            "proof_hash": self.proof_hash,
            "confidence": self.confidence,
            "generated_at": self.generated_at.isoformat(),
            "valid": self.valid,
        }


@dataclass(frozen=True)
class Verdict:
    """Terminal outcome of one verification run. Never revised."""

    experience_id: str
    proofs: tuple[Proof, ...]
    overall_confidence: float
    verified: bool
    decided_at: datetime
    failures: dict[EvidenceKind, FailureKind] = field(default_factory=dict)

    @property
    def valid_proofs(self) -> tuple[Proof, ...]:
        return tuple(proof for proof in self.proofs if proof.valid)

    @property
    def experience_score(self) -> int:
        """Per-experience score shown next to the experience (0-100)."""
        return round_half_up(self.overall_confidence * 100)

    def proof_for(self, kind: EvidenceKind) -> Proof | None:
        return next((proof for proof in self.proofs if proof.kind == kind), None)

    def to_record(self) -> dict[str, Any]:
        """JSON-safe representation handed to ledger and storage collaborators."""
        return {
            "experience_id": self.experience_id,
            "proofs": [proof.to_dict() for proof in self.proofs],
            "overall_confidence": self.overall_confidence,
            "verified": self.verified,
            "decided_at": self.decided_at.isoformat(),
            "failures": {kind.value: failure.value for kind, failure in self.failures.items()},
            "experience_score": self.experience_score,
        }


@dataclass(frozen=True)
class TrustHistoryEntry:
    confidence: float
    verified: bool
    occurred_at: datetime

    @classmethod
    def from_verdict(cls, verdict: Verdict, occurred_at: datetime) -> TrustHistoryEntry:
        return cls(
            confidence=verdict.overall_confidence,
            verified=verdict.verified,
            occurred_at=occurred_at,
        )


# ---------------------------------------------------------------------------
# Stage state machine records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageTransition:
    """One observed stage transition, as delivered to progress sinks."""

    run_id: str
    stage: StageName
    from_state: StageState
    to_state: StageState
    at: datetime
    proof: Proof | None = None
    failure: FailureKind | None = None
    record_id: str | None = None


@dataclass(frozen=True)
class StageSnapshot:
    stage: StageName
    state: StageState
    proof: Proof | None = None
    failure: FailureKind | None = None
    record_id: str | None = None
