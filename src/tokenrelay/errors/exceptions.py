"""
Unified exception hierarchy for tokenrelay.

Provides typed exceptions with retry classification so callers can decide
whether a failure is worth retrying or needs a credential refresh.
"""

from tokenrelay.types import ErrorCategory


class TokenRelayError(Exception):
    """
    Base exception for all tokenrelay errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Category Base Classes
# =============================================================================


class AuthError(TokenRelayError):
    """Base class for authentication errors."""

    category = ErrorCategory.AUTH


class TransientError(TokenRelayError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(TokenRelayError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code in (401, 403):
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Classify any exception into an error category.

    Typed tokenrelay errors carry their own category; timeouts and
    connection failures are transient; everything else is unknown.
    """
    if isinstance(exc, TokenRelayError):
        return exc.category

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "TokenRelayError",
    "AuthError",
    "TransientError",
    "PermanentError",
    "classify_http_status",
    "classify_exception",
]
