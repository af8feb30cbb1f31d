"""Verification error hierarchy."""

from enum import StrEnum
from typing import Any


class FailureKind(StrEnum):
    """Reason a stage (or a whole run) did not complete."""

    MALFORMED_EVIDENCE = "malformed_evidence"
    EVIDENCE_INCOMPLETE = "evidence_incomplete"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_TIMEOUT = "provider_timeout"
    LEDGER_RECORDING_FAILED = "ledger_recording_failed"
    CANCELLED = "cancelled"


class VerificationError(Exception):
    """Base exception for verification errors."""

    code = "VERIFICATION_INTERNAL_ERROR"
    kind: FailureKind | None = None
    retryable = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details
        super().__init__(message)


class MalformedEvidenceError(VerificationError):
    """Evidence input failed canonicalization."""

    code = "VERIFICATION_MALFORMED_EVIDENCE"
    kind = FailureKind.MALFORMED_EVIDENCE


class EvidenceIncompleteError(VerificationError):
    """Provider data lacks fields required to build evidence."""

    code = "VERIFICATION_EVIDENCE_INCOMPLETE"
    kind = FailureKind.EVIDENCE_INCOMPLETE


class ProviderUnavailableError(VerificationError):
    """Evidence provider could not be reached."""

    code = "VERIFICATION_PROVIDER_UNAVAILABLE"
    kind = FailureKind.PROVIDER_UNAVAILABLE
    retryable = True


class ProviderTimeoutError(VerificationError):
    """Evidence provider did not answer within the stage timeout."""

    code = "VERIFICATION_PROVIDER_TIMEOUT"
    kind = FailureKind.PROVIDER_TIMEOUT
    retryable = True


class LedgerRecordingFailedError(VerificationError):
    """Verdict was computed but could not be persisted to the ledger.

    The verdict itself stays valid; callers decide whether to resubmit.
    ``retryable`` is False when the ledger rejected the record outright.
    """

    code = "VERIFICATION_LEDGER_RECORDING_FAILED"
    kind = FailureKind.LEDGER_RECORDING_FAILED
    retryable = True

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = True,
    ):
        super().__init__(message, details=details)
        self.retryable = retryable


class StageTransitionError(VerificationError):
    """Illegal stage state transition requested."""

    code = "VERIFICATION_ILLEGAL_TRANSITION"

    def __init__(
        self,
        message: str,
        stage: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details={**(details or {}), "stage": stage})
        self.stage = stage


def failure_kind_of(error: BaseException) -> FailureKind:
    """Map any exception raised inside a stage to the failure kind it records."""
    if isinstance(error, VerificationError) and error.kind is not None:
        return error.kind
    if isinstance(error, TimeoutError):
        return FailureKind.PROVIDER_TIMEOUT
    return FailureKind.PROVIDER_UNAVAILABLE
