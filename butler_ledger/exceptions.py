"""Exception hierarchy for the Butler ledger.

All Butler-specific exceptions inherit from ButlerException, enabling:
- One exception handler at the API boundary
- HTTP status code mapping per error type
- Structured error payloads for agents and HTTP callers

Usage:
    from butler_ledger.exceptions import (
        InsufficientFundsError,
        DependencyUnavailableError,
    )

    try:
        new_balance = await ledger.debit(account_id, amount)
    except InsufficientFundsError as e:
        return e.to_dict()

All exceptions have:
- error_code: Machine-readable error code (e.g., "INVALID_AMOUNT")
- http_status: HTTP status code for API responses
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

PAYMENT_REQUIRED = "402 Payment Required"


class ButlerException(Exception):
    """Base exception for all Butler errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "BUTLER_ERROR"
    http_status: int = 500

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
        """Convert exception to API response format."""
        result: dict[str, Any] = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation & Input Errors (4xx)
# =============================================================================

class ButlerValidationError(ButlerException):
    """Invalid input data or parameters."""

    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class InvalidAmountError(ButlerValidationError):
    """Credit or debit amount is not a positive number."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: Any, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Invalid amount: {amount!r}. Amount must be greater than zero",
            field="amount",
            details={"amount": str(amount)},
        )
        self.amount = amount


class OperationNotPermittedError(ButlerException):
    """Operation is disabled in the current environment."""

    error_code = "NOT_PERMITTED"
    http_status = 403


class UnknownOperationError(ButlerException):
    """No priced operation or tool is registered under this name."""

    error_code = "UNKNOWN_OPERATION"
    http_status = 404

    def __init__(self, operation: str, available: Optional[list[str]] = None) -> None:
        details: dict[str, Any] = {"operation": operation}
        if available:
            details["available"] = sorted(available)
        super().__init__(f"Unknown operation '{operation}'", details=details)
        self.operation = operation


# =============================================================================
# Funds Errors
# =============================================================================

class InsufficientFundsError(ButlerException):
    """Available balance is lower than the amount required."""

    error_code = "INSUFFICIENT_FUNDS"
    http_status = 402

    def __init__(
        self,
        available: Decimal,
        required: Decimal,
        account_id: Optional[str] = None,
        currency: str = "USDC",
    ) -> None:
        self.available = available
        self.required = required
        self.account_id = account_id
        self.currency = currency
        super().__init__(
            f"Insufficient funds. Need {required:.2f} {currency}, have {available:.2f} {currency}.",
            details={"required": str(required), "available": str(available)},
        )

    def to_dict(self) -> dict[str, Any]:
        """Render as the payment-required rejection agents understand."""
        return {
            "success": False,
            "error": PAYMENT_REQUIRED,
            "message": self.message,
            "required": float(self.required),
            "available": float(self.available),
        }


# =============================================================================
# Delivery Quote Errors
# =============================================================================

class QuoteNotFoundError(ButlerException):
    """Quote was never issued or has already been consumed."""

    error_code = "QUOTE_NOT_FOUND"
    http_status = 404

    def __init__(self, quote_id: str) -> None:
        super().__init__(
            "The delivery quote was not found. Please request a new quote.",
            details={"quote_id": quote_id},
        )
        self.quote_id = quote_id

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": "Quote not found", "message": self.message, "quoteId": self.quote_id}


class QuoteExpiredError(ButlerException):
    """Quote is older than the confirmation window."""

    error_code = "QUOTE_EXPIRED"
    http_status = 410

    def __init__(self, quote_id: str, expired_at: Optional[str] = None) -> None:
        details: dict[str, Any] = {"quote_id": quote_id}
        if expired_at:
            details["expired_at"] = expired_at
        super().__init__(
            "The delivery quote has expired. Please request a new quote.",
            details=details,
        )
        self.quote_id = quote_id

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": "Quote expired", "message": self.message, "quoteId": self.quote_id}


# =============================================================================
# External Collaborator Errors (5xx)
# =============================================================================

class DependencyUnavailableError(ButlerException):
    """An external API failed or timed out. The paid action did not happen."""

    error_code = "DEPENDENCY_UNAVAILABLE"
    http_status = 503

    def __init__(
        self,
        dependency: str,
        reason: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["dependency"] = dependency
        if reason:
            details["reason"] = reason
        if status_code is not None:
            details["status_code"] = status_code
        message = f"{dependency} is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details=details)
        self.dependency = dependency
        self.reason = reason
        self.status_code = status_code


__all__ = [
    "PAYMENT_REQUIRED",
    "ButlerException",
    "ButlerValidationError",
    "InvalidAmountError",
    "OperationNotPermittedError",
    "UnknownOperationError",
    "InsufficientFundsError",
    "QuoteNotFoundError",
    "QuoteExpiredError",
    "DependencyUnavailableError",
]
