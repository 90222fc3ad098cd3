"""
Bearer-token caching and refresh against an Auth0-style identity provider.

Tokens are cached per client id, refreshed one at a time behind a shared
gate, and optionally refreshed ahead of time by a scheduler. Services that
answer 401 with a ``WWW-Authenticate: Bearer`` challenge tell the handler
which client id (and identity provider) to use.

Basic Usage:
    from tokenrelay.auth import Credential, DefaultSettings, TokenProvider

    provider = TokenProvider(
        DefaultSettings(
            server_url="https://example.auth0.com",
            refresh_token=os.getenv("AUTH0_REFRESH_TOKEN"),
            auto_refresh_after=timedelta(minutes=50),
        )
    )

    # Register a client (fetches its first token)
    await provider.add_or_update_client_id("abc123")

    # Get token (cached, refreshed on demand)
    token = await provider.get_token_for_client("abc123")
    headers = {"Authorization": f"Bearer {token}"}

Automatic Authentication:
    from tokenrelay.auth import AuthenticatingHandler

    async with AuthenticatingHandler(provider) as http:
        # A 401 challenge names the client id; the handler refreshes and
        # retries once, then remembers the host for later requests.
        response = await http.get("https://orders.example.com/v1/orders")

Client Credentials:
    await provider.add_or_update_client(
        Credential(
            client_id="svc",
            client_secret=os.getenv("CLIENT_SECRET"),
            audience="https://api.example.com",
        )
    )
"""

from tokenrelay.auth.api_client import AuthenticationApiClient
from tokenrelay.auth.challenge import (
    challenge_from_headers,
    parse_challenges,
    parse_header_values,
    parse_www_authenticate,
    split_www_authenticate,
)
from tokenrelay.auth.coordinator import (
    DEFAULT_FRESHNESS_WINDOW_SECONDS,
    DEFAULT_GATE_TIMEOUT_SECONDS,
    RefreshCoordinator,
)
from tokenrelay.auth.exceptions import (
    AuthenticationFailedError,
    GateTimeoutError,
    InvalidConfigurationError,
    MissingCredentialError,
)
from tokenrelay.auth.handler import AuthenticatingHandler
from tokenrelay.auth.models import ChallengeInfo, Credential, DefaultSettings, ServiceSettings
from tokenrelay.auth.provider import TokenProvider
from tokenrelay.auth.scheduler import AutoRefreshScheduler
from tokenrelay.auth.store import CredentialStore
from tokenrelay.auth.strategies import (
    AuthenticationResult,
    StrategyKind,
    TokenAuthenticator,
    select_strategy,
)

__all__ = [
    # Provider
    "TokenProvider",
    "AuthenticatingHandler",
    # Components
    "CredentialStore",
    "RefreshCoordinator",
    "AutoRefreshScheduler",
    "TokenAuthenticator",
    "AuthenticationApiClient",
    "DEFAULT_GATE_TIMEOUT_SECONDS",
    "DEFAULT_FRESHNESS_WINDOW_SECONDS",
    # Strategies
    "StrategyKind",
    "AuthenticationResult",
    "select_strategy",
    # Challenges
    "parse_www_authenticate",
    "split_www_authenticate",
    "parse_challenges",
    "parse_header_values",
    "challenge_from_headers",
    # Models
    "Credential",
    "DefaultSettings",
    "ServiceSettings",
    "ChallengeInfo",
    # Exceptions
    "MissingCredentialError",
    "AuthenticationFailedError",
    "GateTimeoutError",
    "InvalidConfigurationError",
]
