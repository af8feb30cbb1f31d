"""Evidence quality scoring - deterministic confidence from input signals.

This module contains ZERO I/O. Pure functions: the same evidence and the same
generation time always yield the same confidence.
"""

import math
from datetime import datetime

from truthstream.verification.models import (
    EvidenceInput,
    LocationEvidence,
    PaymentEvidence,
    SocialEvidence,
)

# (max accuracy in meters, confidence), checked in order.
LOCATION_ACCURACY_BANDS: tuple[tuple[float, float], ...] = (
    (10.0, 0.98),
    (25.0, 0.94),
    (50.0, 0.88),
    (100.0, 0.80),
    (250.0, 0.68),
    (500.0, 0.55),
)
LOCATION_FALLBACK_CONFIDENCE = 0.40

PAYMENT_BASE_CONFIDENCE = 0.80
PAYMENT_MERCHANT_VERIFIED_BONUS = 0.10
# (max relative deviation, adjustment), checked in order.
PAYMENT_AMOUNT_BANDS: tuple[tuple[float, float], ...] = (
    (0.05, 0.08),
    (0.25, 0.02),
)
PAYMENT_AMOUNT_MISMATCH_PENALTY = -0.30

# (min engagement, confidence), checked in order.
SOCIAL_ENGAGEMENT_TIERS: tuple[tuple[int, float], ...] = (
    (100, 0.92),
    (10, 0.86),
    (1, 0.80),
)
SOCIAL_BASE_CONFIDENCE = 0.74
SOCIAL_UNKNOWN_PLATFORM_PENALTY = -0.10
KNOWN_SOCIAL_PLATFORMS = frozenset({"instagram", "x", "twitter", "tiktok", "facebook", "threads"})

CAPTURE_HALF_LIFE_HOURS = 72.0
CAPTURE_MIN_WEIGHT = 0.6


def capture_freshness(captured_at: datetime, generated_at: datetime) -> float:
    """Exponential decay of evidence age at proof generation time.

    Returns:
        Weight between CAPTURE_MIN_WEIGHT and 1.0
    """
    age_hours = (generated_at - captured_at).total_seconds() / 3600.0
    if age_hours <= 0:
        return 1.0
    decay_constant = math.log(2.0) / CAPTURE_HALF_LIFE_HOURS
    return max(math.exp(-decay_constant * age_hours), CAPTURE_MIN_WEIGHT)


def score_location(evidence: LocationEvidence) -> float:
    for max_accuracy, confidence in LOCATION_ACCURACY_BANDS:
        if evidence.accuracy_meters <= max_accuracy:
            return confidence
    return LOCATION_FALLBACK_CONFIDENCE


def score_payment(evidence: PaymentEvidence) -> float:
    score = PAYMENT_BASE_CONFIDENCE
    if evidence.merchant_verified:
        score += PAYMENT_MERCHANT_VERIFIED_BONUS

    if evidence.attested_amount is not None:
        if evidence.claimed_amount > 0:
            difference = abs(evidence.attested_amount - evidence.claimed_amount)
            deviation = difference / evidence.claimed_amount
        else:
            deviation = 0.0 if evidence.attested_amount == 0 else math.inf
        adjustment = PAYMENT_AMOUNT_MISMATCH_PENALTY
        for max_deviation, bonus in PAYMENT_AMOUNT_BANDS:
            if deviation <= max_deviation:
                adjustment = bonus
                break
        score += adjustment
    return score


def score_social(evidence: SocialEvidence) -> float:
    score = SOCIAL_BASE_CONFIDENCE
    for min_engagement, confidence in SOCIAL_ENGAGEMENT_TIERS:
        if evidence.claimed_engagement >= min_engagement:
            score = confidence
            break
    if evidence.platform.strip().lower() not in KNOWN_SOCIAL_PLATFORMS:
        score += SOCIAL_UNKNOWN_PLATFORM_PENALTY
    return score


def score_evidence(evidence: EvidenceInput, generated_at: datetime) -> float:
    """Compute the confidence of a proof for the given evidence.

    Args:
        evidence: Canonicalizable evidence input
        generated_at: Proof generation time, used for capture freshness

    Returns:
        Confidence in [0, 1], rounded to 4 decimals
    """
    if isinstance(evidence, LocationEvidence):
        raw = score_location(evidence)
    elif isinstance(evidence, PaymentEvidence):
        raw = score_payment(evidence)
    elif isinstance(evidence, SocialEvidence):
        raw = score_social(evidence)
    else:
        raise TypeError(f"Unsupported evidence type: {type(evidence).__name__}")

    weighted = raw * capture_freshness(evidence.captured_at, generated_at)
    return round(min(max(weighted, 0.0), 1.0), 4)
