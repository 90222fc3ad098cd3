"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared across the package to ensure consistency and type safety.
"""

from enum import Enum
from typing import Any, Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed later
                   (e.g., network timeouts, 429/503 errors)
        AUTH: Authentication failures requiring credential refresh
              (e.g., 401 errors, rejected grants)
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., unknown client, configuration issues)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class IdentityProviderClient(Protocol):
    """
    Protocol for the network primitive used to talk to the identity provider.

    Implementations POST a JSON body to ``server_url`` + ``path`` and return the
    parsed JSON response, raising on transport errors or non-2xx responses.
    """

    async def post(self, server_url: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        ...


__all__ = ["ErrorCategory", "IdentityProviderClient"]
