"""Evidence collectors - one provider call, normalize, delegate to ProofGenerator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from truthstream.clients.base import ProviderClient
from truthstream.core.errors import (
    EvidenceIncompleteError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    VerificationError,
)
from truthstream.utils.clock import coerce_utc
from truthstream.verification.models import (
    Claim,
    EvidenceInput,
    EvidenceKind,
    LocationEvidence,
    PaymentEvidence,
    Proof,
    SocialEvidence,
)
from truthstream.verification.proof_generator import ProofGenerator

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Raw provider payloads
# ---------------------------------------------------------------------------


class _RawEvidence(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    timestamp: datetime

    @field_validator("timestamp", mode="after")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return coerce_utc(v)  # type: ignore[return-value]


class LocationReading(_RawEvidence):
    latitude: float
    longitude: float
    accuracy: float


class PaymentRecord(_RawEvidence):
    merchant: str = Field(min_length=1)
    amount: float | None = None
    merchant_verified: bool = False


class SocialActivity(_RawEvidence):
    platform: str = Field(min_length=1)
    post_id: str = Field(min_length=1)
    engagement: int = 0


# ---------------------------------------------------------------------------
# Collectors
# ---------------------------------------------------------------------------


class EvidenceCollector(ABC):
    """Turn one provider's raw data into a Proof for a claim."""

    kind: ClassVar[EvidenceKind]
    raw_model: ClassVar[type[_RawEvidence]]

    def __init__(self, proof_generator: ProofGenerator | None = None):
        self.proof_generator = proof_generator or ProofGenerator()

    async def collect(self, claim: Claim, provider: ProviderClient) -> Proof:
        """Collect evidence and return its proof.

        Raises:
            ProviderUnavailableError: provider could not be reached
            ProviderTimeoutError: provider timed out
            EvidenceIncompleteError: provider data lacks required fields
            MalformedEvidenceError: evidence failed canonicalization
        """
        payload = await self._fetch(claim, provider)
        raw = self._parse(payload)
        evidence = self.normalize(claim, raw)
        proof = self.proof_generator.generate(evidence)
        logger.debug(
            "evidence_collected",
            kind=self.kind.value,
            experience_id=claim.experience_id,
            confidence=proof.confidence,
        )
        return proof

    async def _fetch(self, claim: Claim, provider: ProviderClient) -> Mapping[str, Any]:
        try:
            return await provider.fetch(claim)
        except VerificationError:
            raise
        except (TimeoutError, httpx.TimeoutException) as e:
            raise ProviderTimeoutError(
                f"{self.kind.value} provider timed out",
                details={"kind": self.kind.value},
            ) from e
        except (ConnectionError, OSError, httpx.HTTPError) as e:
            raise ProviderUnavailableError(
                f"{self.kind.value} provider unavailable: {e}",
                details={"kind": self.kind.value},
            ) from e

    def _parse(self, payload: Mapping[str, Any] | None) -> _RawEvidence:
        if not payload:
            raise EvidenceIncompleteError(
                f"{self.kind.value} provider returned no data",
                details={"kind": self.kind.value},
            )
        try:
            return self.raw_model.model_validate(dict(payload))
        except ValidationError as e:
            missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
            raise EvidenceIncompleteError(
                f"{self.kind.value} provider data incomplete",
                details={"kind": self.kind.value, "fields": missing},
            ) from e

    @abstractmethod
    def normalize(self, claim: Claim, raw: Any) -> EvidenceInput:
        """Map the parsed provider payload onto the matching evidence input."""
        ...


class LocationCollector(EvidenceCollector):
    kind = EvidenceKind.LOCATION
    raw_model = LocationReading

    def normalize(self, claim: Claim, raw: LocationReading) -> LocationEvidence:
        return LocationEvidence(
            latitude=raw.latitude,
            longitude=raw.longitude,
            accuracy_meters=raw.accuracy,
            captured_at=raw.timestamp,
        )


class PaymentCollector(EvidenceCollector):
    kind = EvidenceKind.PAYMENT
    raw_model = PaymentRecord

    def normalize(self, claim: Claim, raw: PaymentRecord) -> PaymentEvidence:
        if claim.estimated_amount is not None:
            claimed, attested = claim.estimated_amount, raw.amount
        elif raw.amount is not None:
            # Nothing claimed to compare against; the ledger amount is the claim.
            claimed, attested = raw.amount, None
        else:
            raise EvidenceIncompleteError(
                "payment amount is neither claimed nor attested",
                details={"kind": self.kind.value, "fields": ["amount"]},
            )
        return PaymentEvidence(
            merchant_ref=raw.merchant,
            claimed_amount=claimed,
            captured_at=raw.timestamp,
            attested_amount=attested,
            merchant_verified=raw.merchant_verified,
        )


class SocialCollector(EvidenceCollector):
    kind = EvidenceKind.SOCIAL
    raw_model = SocialActivity

    def normalize(self, claim: Claim, raw: SocialActivity) -> SocialEvidence:
        return SocialEvidence(
            platform=raw.platform,
            post_ref=raw.post_id,
            claimed_engagement=raw.engagement,
            captured_at=raw.timestamp,
        )


def default_collectors(
    proof_generator: ProofGenerator | None = None,
) -> dict[EvidenceKind, EvidenceCollector]:
    """One collector per evidence kind sharing a single proof generator."""
    generator = proof_generator or ProofGenerator()
    return {
        EvidenceKind.LOCATION: LocationCollector(generator),
        EvidenceKind.PAYMENT: PaymentCollector(generator),
        EvidenceKind.SOCIAL: SocialCollector(generator),
    }
