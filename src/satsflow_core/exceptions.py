"""Unified exception hierarchy for satsflow-core.

All satsflow-specific exceptions inherit from SatsflowException. The
hierarchy mirrors how the refill core reacts to a failure:

- PreconditionError: aborts before any side effect, never retried
- RemoteRejectionError: surfaced to the user, retried on the next eligible tick
- PaymentTimeoutError: the settlement poll budget ran out
- QuoteNotPaidError: a single poll found the quote unsettled (internal only)
- PersistenceError: a durable write failed, state stays dirty

Usage:
    from satsflow_core.exceptions import (
        SatsflowException,
        WalletNotConnectedError,
        error_message,
    )

All exceptions have:
- error_code: Machine-readable error code (e.g., "WALLET_NOT_CONNECTED")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a serializable form
"""
from __future__ import annotations

from typing import Any, Optional


class SatsflowException(Exception):
    """Base exception for all satsflow errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "SATSFLOW_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Precondition Errors
# =============================================================================

class PreconditionError(SatsflowException):
    """A required collaborator or setting is missing."""

    error_code = "PRECONDITION_FAILED"


class WalletNotConnectedError(PreconditionError):
    """No remote wallet connection is configured."""

    error_code = "WALLET_NOT_CONNECTED"

    def __init__(self, message: str = "wallet not connected") -> None:
        super().__init__(message)


class CredentialNotConfiguredError(PreconditionError):
    """Auto top-up is enabled but no credential is selected."""

    error_code = "CREDENTIAL_NOT_CONFIGURED"

    def __init__(self, message: str = "no API credential configured") -> None:
        super().__init__(message)


class NoActiveMintError(PreconditionError):
    """The local wallet has no active mint to pay into or spend from."""

    error_code = "NO_ACTIVE_MINT"

    def __init__(self, message: str = "no active mint selected") -> None:
        super().__init__(message)


# =============================================================================
# Remote Rejection Errors
# =============================================================================

class RemoteRejectionError(SatsflowException):
    """A remote counterparty rejected the request."""

    error_code = "REMOTE_REJECTED"


class MintError(RemoteRejectionError):
    """The mint refused an invoice, mint or send request."""

    error_code = "MINT_ERROR"

    def __init__(
        self,
        message: str,
        mint_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if mint_id:
            details["mint_id"] = mint_id
        super().__init__(message, details=details)
        self.mint_id = mint_id


class TokenGenerationError(RemoteRejectionError):
    """The wallet could not produce a spend token for a top-up."""

    error_code = "TOKEN_GENERATION_FAILED"

    def __init__(self, message: str = "Failed to generate token for topup") -> None:
        super().__init__(message)


class TopupRejectedError(RemoteRejectionError):
    """The credential top-up endpoint answered with a non-2xx status."""

    error_code = "TOPUP_REJECTED"

    def __init__(
        self,
        status_code: int,
        detail: Optional[str] = None,
    ) -> None:
        message = detail or f"Topup failed with status {status_code}"
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
        self.detail = detail


# =============================================================================
# Timeout & Transient Errors
# =============================================================================

class PaymentTimeoutError(SatsflowException):
    """Settlement polling exhausted its attempt budget."""

    error_code = "PAYMENT_TIMEOUT"

    def __init__(
        self,
        message: str = "payment did not complete within timeout",
        attempts: Optional[int] = None,
    ) -> None:
        details = {"attempts": attempts} if attempts is not None else None
        super().__init__(message, details=details)
        self.attempts = attempts


class QuoteNotPaidError(SatsflowException):
    """The mint quote has not been settled yet."""

    error_code = "QUOTE_NOT_PAID"

    def __init__(self, quote_id: str) -> None:
        super().__init__(f"quote {quote_id} not paid yet", details={"quote_id": quote_id})
        self.quote_id = quote_id


# =============================================================================
# Persistence Errors
# =============================================================================

class PersistenceError(SatsflowException):
    """A durable write or read failed."""

    error_code = "PERSISTENCE_ERROR"


def error_message(error: object) -> str:
    """Classify an arbitrary failure into a human-readable message."""
    if isinstance(error, SatsflowException):
        return error.message
    if isinstance(error, BaseException):
        text = str(error)
        return text or type(error).__name__
    return "Unknown payment error"
