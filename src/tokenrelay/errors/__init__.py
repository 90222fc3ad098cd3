"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- TokenRelayError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from tokenrelay.errors.exceptions import (
    AuthError,
    ErrorCategory,
    PermanentError,
    TokenRelayError,
    TransientError,
    classify_exception,
    classify_http_status,
)

__all__ = [
    "ErrorCategory",
    "TokenRelayError",
    "AuthError",
    "TransientError",
    "PermanentError",
    "classify_exception",
    "classify_http_status",
]
