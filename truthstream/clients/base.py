"""Collaborator interfaces consumed by the verification core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from truthstream.verification.models import Claim, Verdict


class ProviderClient(ABC):
    """Source of raw evidence for one evidence kind.

    Contract:
    - MUST perform at most one external call per fetch
    - MUST raise ProviderUnavailableError / ProviderTimeoutError on failure
    - MUST NOT retry internally
    """

    @abstractmethod
    async def fetch(self, claim: Claim) -> Mapping[str, Any]:
        """Return the provider's raw evidence payload for the claim."""
        ...


class LedgerRecorder(ABC):
    """Durable recorder for verified verdicts.

    Called at most once per verified verdict. Idempotency and retries are the
    recorder's own responsibility.
    """

    @abstractmethod
    async def record(self, verdict: Verdict) -> str:
        """Persist the verdict and return its ledger record id.

        Raises:
            LedgerRecordingFailedError: when the verdict could not be recorded
        """
        ...
