"""Shared hashing helpers for proof generation."""

from __future__ import annotations

import json
from hashlib import sha256
from typing import Any


def canonical_json(payload: dict[str, Any]) -> str:
    """Serialize a payload deterministically (sorted keys, compact separators)."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), allow_nan=False)


def sha256_hex(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict[str, Any]) -> str:
    """Create a stable content hash for a canonical payload."""
    return sha256_hex(canonical_json(payload))
