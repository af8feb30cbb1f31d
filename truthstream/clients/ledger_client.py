"""Ledger HTTP client for recording verified verdicts.

The orchestrator calls ``record`` once per verified verdict and never
retries; transport failures and 5xx responses are retried here (tenacity).
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from truthstream.clients.base import LedgerRecorder
from truthstream.core.config import LEDGER_MAX_BACKOFF_SECONDS, LedgerConfig, get_settings
from truthstream.core.errors import LedgerRecordingFailedError
from truthstream.verification.models import Verdict

logger = structlog.get_logger(__name__)

RECORD_ID_KEYS = ("record_id", "id", "tx_hash")


def build_ledger_payload(verdict: Verdict) -> dict[str, Any]:
    """Ledger payload: the verdict record plus mint-style metadata attributes."""
    payload = verdict.to_record()
    payload["metadata"] = {
        "attributes": [
            {"trait_type": "Verified", "value": str(verdict.verified).lower()},
            {"trait_type": "Confidence", "value": verdict.experience_score},
            {"trait_type": "Timestamp", "value": verdict.decided_at.isoformat()},
        ],
    }
    return payload


class HttpLedgerRecorder(LedgerRecorder):
    """HTTP client for the experience ledger API."""

    def __init__(
        self,
        config: LedgerConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or get_settings().ledger
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self.config.api_key.get_secret_value()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def record(self, verdict: Verdict) -> str:
        """POST the verdict to the ledger and return its record id."""
        if not self.config.base_url:
            raise LedgerRecordingFailedError("Ledger base URL not configured", retryable=False)

        url = f"{self.config.base_url.rstrip('/')}{self.config.records_path}"
        payload = build_ledger_payload(verdict)

        try:
            client = await self._get_client()
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.retry_attempts),
                wait=wait_exponential(
                    multiplier=self.config.retry_backoff_seconds, max=LEDGER_MAX_BACKOFF_SECONDS
                ),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await client.post(
                        url,
                        json=payload,
                        headers=self._build_headers(),
                        timeout=self.config.timeout_seconds,
                    )
                    if response.status_code >= 500:
                        raise httpx.TransportError(f"Ledger server error: {response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(
                "ledger_request_failed",
                experience_id=verdict.experience_id,
                error=str(e),
            )
            raise LedgerRecordingFailedError(
                f"Ledger unavailable: {e}",
                details={"experience_id": verdict.experience_id},
            ) from e

        if not 200 <= response.status_code < 300:
            raise LedgerRecordingFailedError(
                f"Ledger rejected record: HTTP {response.status_code}",
                details={
                    "experience_id": verdict.experience_id,
                    "status_code": response.status_code,
                    "body": response.text[:200],
                },
                retryable=False,
            )

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        record_id = next((data[key] for key in RECORD_ID_KEYS if data.get(key)), None)
        if not record_id:
            raise LedgerRecordingFailedError(
                "Ledger response missing record id",
                details={"experience_id": verdict.experience_id},
                retryable=False,
            )
        logger.info(
            "ledger_record_created", experience_id=verdict.experience_id, record_id=record_id
        )
        return str(record_id)
