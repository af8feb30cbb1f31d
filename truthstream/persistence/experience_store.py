"""Experience storage collaborator.

The verification core never mutates user history itself; it hands verified,
ledger-recorded verdicts to an ExperienceStore and reads history back as a
read-only snapshot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from truthstream.verification.models import Claim, TrustHistoryEntry, Verdict


@dataclass(frozen=True)
class StoredExperience:
    claim: Claim
    verdict: Verdict
    record_id: str

    def history_entry(self) -> TrustHistoryEntry:
        return TrustHistoryEntry.from_verdict(self.verdict, occurred_at=self.claim.occurred_at)


class ExperienceStore(ABC):
    """Persistence for recorded experiences and computed trust scores."""

    @abstractmethod
    async def save_verdict(self, claim: Claim, verdict: Verdict, record_id: str) -> None:
        """Persist a ledger-recorded verdict for the claim's user."""
        ...

    @abstractmethod
    async def load_history(self, user_id: str) -> list[TrustHistoryEntry]:
        """Return the user's history ordered by occurrence."""
        ...

    @abstractmethod
    async def update_trust_score(self, user_id: str, score: int) -> None:
        ...

    @abstractmethod
    async def get_trust_score(self, user_id: str) -> int:
        ...


class InMemoryExperienceStore(ExperienceStore):
    """Process-local store for local runs and tests."""

    def __init__(self) -> None:
        self._experiences: dict[str, dict[str, StoredExperience]] = {}
        self._scores: dict[str, int] = {}

    async def save_verdict(self, claim: Claim, verdict: Verdict, record_id: str) -> None:
        # Re-verification replaces the stored verdict; verdicts themselves are never edited.
        self._experiences.setdefault(claim.user_id, {})[claim.experience_id] = StoredExperience(
            claim=claim,
            verdict=verdict,
            record_id=record_id,
        )

    async def load_history(self, user_id: str) -> list[TrustHistoryEntry]:
        stored = self._experiences.get(user_id, {}).values()
        return sorted(
            (experience.history_entry() for experience in stored),
            key=lambda entry: entry.occurred_at,
        )

    async def update_trust_score(self, user_id: str, score: int) -> None:
        self._scores[user_id] = score

    async def get_trust_score(self, user_id: str) -> int:
        return self._scores.get(user_id, 0)
