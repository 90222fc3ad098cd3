"""
tokenrelay: bearer-token cache and refresh engine for OAuth-style identity providers.

Modules:
    auth     - Credential store, grant strategies, refresh coordination,
               auto-refresh scheduling and the authenticating HTTP handler
    errors   - Exception hierarchy with retry classification
    logging  - Structured JSON/console logging with context propagation
    config   - YAML configuration with environment variable expansion

Design Principles:
    - Async-first (asyncio + aiohttp)
    - In-memory, process-lifetime state only
    - Refresh failures never crash the caller
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
