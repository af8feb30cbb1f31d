"""Trust score engine - 0-100 reputation from a user's verified history.

This module contains ZERO I/O. Pure function of the history snapshot:
same history, same score.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from truthstream.core.config import TrustScoreConfig, get_settings
from truthstream.core.metrics import truthstream_trust_score
from truthstream.utils.clock import coerce_utc
from truthstream.verification.models import TrustHistoryEntry, round_half_up

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class TrustScoreBreakdown:
    base: float
    quantity_bonus: float
    consistency_bonus: float
    verified_count: int
    span_days: float
    score: int


EMPTY_BREAKDOWN = TrustScoreBreakdown(
    base=0.0,
    quantity_bonus=0.0,
    consistency_bonus=0.0,
    verified_count=0,
    span_days=0.0,
    score=0,
)


class TrustScoreEngine:
    """Combine mean confidence, a quantity bonus and a time-spread bonus."""

    def __init__(self, config: TrustScoreConfig | None = None):
        self.config = config or get_settings().trust

    def compute(self, history: Sequence[TrustHistoryEntry]) -> int:
        """Trust score in [0, 100] for the history."""
        score = self.breakdown(history).score
        truthstream_trust_score.observe(score)
        return score

    def breakdown(self, history: Sequence[TrustHistoryEntry]) -> TrustScoreBreakdown:
        verified = [entry for entry in history if entry.verified]
        if not verified:
            return EMPTY_BREAKDOWN

        base = sum(entry.confidence * 100 for entry in verified) / len(verified)
        quantity_bonus = min(
            len(verified) * self.config.quantity_bonus_per_entry,
            self.config.quantity_bonus_cap,
        )
        span_days = self.span_days(verified)
        consistency_bonus = self.consistency_bonus(span_days, len(verified))

        total = min(base + quantity_bonus + consistency_bonus, self.config.score_cap)
        return TrustScoreBreakdown(
            base=base,
            quantity_bonus=quantity_bonus,
            consistency_bonus=consistency_bonus,
            verified_count=len(verified),
            span_days=span_days,
            score=round_half_up(total),
        )

    @staticmethod
    def span_days(entries: Sequence[TrustHistoryEntry]) -> float:
        """Days between the earliest and latest entry; 0 for fewer than two."""
        if len(entries) < 2:
            return 0.0
        timestamps = [coerce_utc(entry.occurred_at) for entry in entries]
        earliest = min(ts for ts in timestamps if ts is not None)
        latest = max(ts for ts in timestamps if ts is not None)
        return (latest - earliest).total_seconds() / SECONDS_PER_DAY

    def consistency_bonus(self, span_days: float, verified_count: int) -> float:
        if verified_count < 2 or span_days <= 0:
            return 0.0
        for min_span, bonus in self.config.consistency_tiers:
            if span_days > min_span:
                return bonus
        return self.config.consistency_floor_bonus
