"""Unit tests for evidence quality scoring."""

from datetime import UTC, datetime, timedelta

import pytest

from truthstream.verification.models import LocationEvidence, PaymentEvidence, SocialEvidence
from truthstream.verification.quality import (
    CAPTURE_MIN_WEIGHT,
    LOCATION_FALLBACK_CONFIDENCE,
    capture_freshness,
    score_evidence,
    score_location,
    score_payment,
    score_social,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _location(accuracy: float) -> LocationEvidence:
    return LocationEvidence(
        latitude=40.0, longitude=-73.0, accuracy_meters=accuracy, captured_at=NOW
    )


def _payment(claimed: float, attested: float | None, verified: bool = False) -> PaymentEvidence:
    return PaymentEvidence(
        merchant_ref="m-1",
        claimed_amount=claimed,
        captured_at=NOW,
        attested_amount=attested,
        merchant_verified=verified,
    )


def _social(platform: str, engagement: int) -> SocialEvidence:
    return SocialEvidence(
        platform=platform, post_ref="p-1", claimed_engagement=engagement, captured_at=NOW
    )


class TestLocation:
    @pytest.mark.parametrize(
        ("accuracy", "expected"),
        [(5, 0.98), (10, 0.98), (12, 0.94), (50, 0.88), (100, 0.80), (300, 0.55)],
    )
    def test_accuracy_bands(self, accuracy, expected):
        assert score_location(_location(accuracy)) == expected

    def test_poor_accuracy_falls_back(self):
        assert score_location(_location(2000)) == LOCATION_FALLBACK_CONFIDENCE


class TestPayment:
    def test_verified_merchant_with_matching_amount(self):
        assert score_payment(_payment(185.0, 182.5, verified=True)) == pytest.approx(0.98)

    def test_small_deviation(self):
        assert score_payment(_payment(100.0, 120.0)) == pytest.approx(0.82)

    def test_large_deviation_is_penalized(self):
        assert score_payment(_payment(100.0, 300.0)) == pytest.approx(0.50)

    def test_no_attested_amount_has_no_adjustment(self):
        assert score_payment(_payment(100.0, None)) == pytest.approx(0.80)

    def test_zero_claim(self):
        assert score_payment(_payment(0.0, 0.0)) == pytest.approx(0.88)
        assert score_payment(_payment(0.0, 10.0)) == pytest.approx(0.50)


class TestSocial:
    @pytest.mark.parametrize(
        ("engagement", "expected"),
        [(0, 0.74), (1, 0.80), (10, 0.86), (57, 0.86), (100, 0.92)],
    )
    def test_engagement_tiers(self, engagement, expected):
        assert score_social(_social("instagram", engagement)) == pytest.approx(expected)

    def test_unknown_platform_penalty(self):
        assert score_social(_social("myspace", 100)) == pytest.approx(0.82)

    def test_platform_match_is_case_insensitive(self):
        assert score_social(_social(" TikTok ", 100)) == pytest.approx(0.92)


class TestCaptureFreshness:
    def test_fresh_capture(self):
        assert capture_freshness(NOW, NOW) == 1.0

    def test_future_capture_is_not_boosted(self):
        assert capture_freshness(NOW + timedelta(hours=1), NOW) == 1.0

    def test_decays_with_age(self):
        assert capture_freshness(NOW - timedelta(hours=24), NOW) == pytest.approx(
            0.5 ** (1 / 3)
        )

    def test_floor(self):
        assert capture_freshness(NOW - timedelta(days=30), NOW) == CAPTURE_MIN_WEIGHT


class TestScoreEvidence:
    def test_deterministic(self):
        evidence = _location(12)
        assert score_evidence(evidence, NOW) == score_evidence(evidence, NOW)

    def test_applies_freshness_and_rounds(self):
        evidence = LocationEvidence(
            latitude=40.0,
            longitude=-73.0,
            accuracy_meters=5,
            captured_at=NOW - timedelta(hours=72),
        )
        assert score_evidence(evidence, NOW) == round(0.98 * CAPTURE_MIN_WEIGHT, 4)

    def test_in_unit_interval(self):
        assert 0.0 <= score_evidence(_payment(0.0, 1000.0), NOW) <= 1.0

    def test_rejects_unknown_type(self):
        with pytest.raises(TypeError):
            score_evidence(object(), NOW)  # type: ignore[arg-type]
