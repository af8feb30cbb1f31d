"""Proof generator - turn evidence inputs into hashed, confidence-scored proofs.

This module contains ZERO I/O. The only impure input is the injected clock.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from truthstream.core.config import get_settings
from truthstream.core.errors import MalformedEvidenceError
from truthstream.core.metrics import truthstream_proofs_generated_total
from truthstream.utils.clock import utc_now
from truthstream.utils.hashing import hash_payload, sha256_hex
from truthstream.verification.models import (
    EvidenceInput,
    LocationEvidence,
    PaymentEvidence,
    Proof,
    SocialEvidence,
)
from truthstream.verification.quality import score_evidence

Clock = Callable[[], datetime]


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedEvidenceError(
            f"Evidence field '{field_name}' is missing or empty",
            details={"field": field_name},
        )
    return value.strip()


def _require_number(
    value: Any,
    field_name: str,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEvidenceError(
            f"Evidence field '{field_name}' must be numeric",
            details={"field": field_name},
        )
    number = float(value)
    if not math.isfinite(number):
        raise MalformedEvidenceError(
            f"Evidence field '{field_name}' must be finite",
            details={"field": field_name},
        )
    if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
        raise MalformedEvidenceError(
            f"Evidence field '{field_name}' out of range",
            details={"field": field_name, "value": number, "min": minimum, "max": maximum},
        )
    return number


def _require_timestamp(value: Any, field_name: str) -> str:
    if not isinstance(value, datetime) or value.tzinfo is None:
        raise MalformedEvidenceError(
            f"Evidence field '{field_name}' must be a timezone-aware datetime",
            details={"field": field_name},
        )
    return value.astimezone(UTC).isoformat()


def canonicalize(evidence: EvidenceInput) -> dict[str, Any]:
    """Build the canonical, hashable form of an evidence input.

    Raises:
        MalformedEvidenceError: when a required field is missing or invalid
    """
    if isinstance(evidence, LocationEvidence):
        return {
            "kind": evidence.kind.value,
            "latitude": _require_number(evidence.latitude, "latitude", -90.0, 90.0),
            "longitude": _require_number(evidence.longitude, "longitude", -180.0, 180.0),
            "accuracy_meters": _require_number(evidence.accuracy_meters, "accuracy_meters", 0.0),
            "captured_at": _require_timestamp(evidence.captured_at, "captured_at"),
        }
    if isinstance(evidence, PaymentEvidence):
        attested = evidence.attested_amount
        return {
            "kind": evidence.kind.value,
            "merchant_ref": _require_text(evidence.merchant_ref, "merchant_ref"),
            "claimed_amount": _require_number(evidence.claimed_amount, "claimed_amount", 0.0),
            "captured_at": _require_timestamp(evidence.captured_at, "captured_at"),
            "attested_amount": None
            if attested is None
            else _require_number(attested, "attested_amount", 0.0),
            "merchant_verified": bool(evidence.merchant_verified),
        }
    if isinstance(evidence, SocialEvidence):
        return {
            "kind": evidence.kind.value,
            "platform": _require_text(evidence.platform, "platform").lower(),
            "post_ref": _require_text(evidence.post_ref, "post_ref"),
            "claimed_engagement": int(
                _require_number(evidence.claimed_engagement, "claimed_engagement", 0.0)
            ),
            "captured_at": _require_timestamp(evidence.captured_at, "captured_at"),
        }
    raise MalformedEvidenceError(
        "Unsupported evidence type",
        details={"type": type(evidence).__name__},
    )


class ProofGenerator:
    """Generate and structurally verify proofs."""

    def __init__(self, clock: Clock | None = None, max_age_hours: float | None = None):
        settings = get_settings()
        self._clock = clock or utc_now
        self._max_age = timedelta(
            hours=max_age_hours
            if max_age_hours is not None
            else settings.verification.proof_max_age_hours
        )
        self._confidence_threshold = settings.verification.confidence_threshold

    def generate(self, evidence: EvidenceInput) -> Proof:
        """Create a proof for the evidence.

        Raises:
            MalformedEvidenceError: when the evidence cannot be canonicalized
        """
        canonical = canonicalize(evidence)
        generated_at = self._clock()
        data_hash = hash_payload(canonical)
        proof = Proof(
            kind=evidence.kind,
            data_hash=data_hash,
            proof_hash=sha256_hex(data_hash + generated_at.isoformat()),
            confidence=score_evidence(evidence, generated_at),
            generated_at=generated_at,
            valid=True,
        )
        truthstream_proofs_generated_total.labels(kind=evidence.kind.value).inc()
        return proof

    def verify(self, proof: Proof, now: datetime | None = None) -> bool:
        """Structural check without recomputation. Never raises."""
        try:
            if not proof.valid or not proof.data_hash or not proof.proof_hash:
                return False
            if proof.confidence <= self._confidence_threshold:
                return False
            current = now or self._clock()
            return current - proof.generated_at <= self._max_age
        except (AttributeError, TypeError):
            return False
