"""Token provider facade tying store, authenticator, coordinator and scheduler together."""

import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from tokenrelay.auth.api_client import AuthenticationApiClient
from tokenrelay.auth.challenge import Challenge, parse_challenges
from tokenrelay.auth.coordinator import (
    DEFAULT_FRESHNESS_WINDOW_SECONDS,
    DEFAULT_GATE_TIMEOUT_SECONDS,
    RefreshCoordinator,
)
from tokenrelay.auth.models import ChallengeInfo, Credential, DefaultSettings
from tokenrelay.auth.scheduler import AutoRefreshScheduler
from tokenrelay.auth.store import CredentialStore
from tokenrelay.auth.strategies import TokenAuthenticator
from tokenrelay.types import IdentityProviderClient

logger = logging.getLogger(__name__)

ChallengeInput = Union[ChallengeInfo, Iterable[Challenge]]


def _as_challenge_info(challenges: ChallengeInput) -> ChallengeInfo:
    if isinstance(challenges, ChallengeInfo):
        return challenges
    return parse_challenges(challenges)


class TokenProvider:
    """
    Caches bearer tokens per client id and keeps them fresh.

    Usage:
        provider = TokenProvider(DefaultSettings(server_url="https://idp.example.com"))
        await provider.add_or_update_client(
            Credential(client_id="abc", username="svc", password="secret")
        )

        token = await provider.get_token_for_client("abc")
        headers = {"Authorization": f"Bearer {token}"}

        await provider.close()
    """

    def __init__(
        self,
        defaults: Optional[DefaultSettings] = None,
        api_client: Optional[IdentityProviderClient] = None,
        scheduler: Optional[AutoRefreshScheduler] = None,
        gate_timeout_seconds: float = DEFAULT_GATE_TIMEOUT_SECONDS,
        freshness_window_seconds: float = DEFAULT_FRESHNESS_WINDOW_SECONDS,
    ):
        self.defaults = defaults or DefaultSettings()
        self._owns_api_client = api_client is None
        self.api_client = api_client or AuthenticationApiClient()
        self.store = CredentialStore(self.defaults)
        self.authenticator = TokenAuthenticator(self.api_client)
        self.scheduler = scheduler or AutoRefreshScheduler(self._scheduled_refresh)
        self.coordinator = RefreshCoordinator(
            self.store,
            self.authenticator,
            scheduler=self.scheduler,
            gate_timeout_seconds=gate_timeout_seconds,
            freshness_window_seconds=freshness_window_seconds,
        )

    @classmethod
    def from_config(cls, config: Any, **kwargs: Any) -> "TokenProvider":
        """
        Build a provider from a loaded RelayConfig.

        Configured clients are registered without contacting the identity
        provider; their first token is fetched on first use.
        """
        owns_api_client = "api_client" not in kwargs
        if owns_api_client:
            kwargs["api_client"] = AuthenticationApiClient(
                timeout_seconds=config.http_timeout_seconds
            )
        provider = cls(
            defaults=config.to_default_settings(),
            gate_timeout_seconds=config.gate_timeout_seconds,
            freshness_window_seconds=config.freshness_window_seconds,
            **kwargs,
        )
        provider._owns_api_client = owns_api_client
        for credential in config.client_credentials():
            provider.store.upsert(credential)
        logger.info(f"Registered {len(provider.store)} configured client(s)")
        return provider

    async def _scheduled_refresh(self, client_id: str) -> None:
        await self.coordinator.ensure_fresh(client_id, force_refresh=False)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def add_or_update_client(
        self, credential: Credential, force_refresh: bool = False
    ) -> Optional[Credential]:
        """
        Register or merge a client and make sure it holds a token.

        Args:
            credential: Partial credential; supplied fields overlay the cached entry
            force_refresh: Refresh even if a token was obtained moments ago

        Returns:
            The client's snapshot after the refresh attempt
        """
        self.store.upsert(credential)
        return await self.coordinator.ensure_fresh(credential.client_id, force_refresh)

    async def add_or_update_client_id(
        self, client_id: str, force_refresh: bool = False
    ) -> Optional[Credential]:
        return await self.add_or_update_client(Credential(client_id=client_id), force_refresh)

    async def add_or_update_from_challenge(
        self,
        challenges: ChallengeInput,
        host: Optional[str],
        force_refresh: bool = False,
        client_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Register the client a service challenged for and route its host to it.

        Args:
            challenges: Parsed ChallengeInfo or raw (scheme, parameter) pairs
            host: Host that issued the challenge
            force_refresh: Refresh even if a token was obtained moments ago
            client_id: Client id to use when the challenge carries none

        Returns:
            The effective client id, or None if neither the challenge nor the
            caller supplied one
        """
        info = _as_challenge_info(challenges)
        effective_id = info.client_id or client_id
        if not effective_id:
            logger.warning(
                "Authentication challenge carried no client id",
                extra={"host": host},
            )
            return None

        await self.add_or_update_client(
            Credential(client_id=effective_id, server_url=info.server_url), force_refresh
        )
        if host:
            self.store.record_route(host, effective_id)
        return effective_id

    # ------------------------------------------------------------------
    # Token lookup
    # ------------------------------------------------------------------

    async def get_token_for_client(
        self, client_id: str, force_refresh: bool = False
    ) -> Optional[str]:
        """
        Get the bearer token for a client id.

        A cached token is returned without touching the refresh gate. An
        unknown client id is registered with defaults and refreshed.
        """
        credential = self.store.get(client_id)
        if credential is not None and credential.bearer and not force_refresh:
            return credential.bearer

        await self.add_or_update_client(
            credential or Credential(client_id=client_id), force_refresh
        )
        credential = self.store.get(client_id)
        return credential.bearer if credential else None

    async def get_token_for_challenge(
        self,
        challenges: ChallengeInput,
        host: Optional[str],
        force_refresh: bool = False,
        client_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Get the bearer token for the client a service challenged for.

        ``client_id`` is used when the challenge does not name one.
        """
        info = _as_challenge_info(challenges)
        effective_id = info.client_id or client_id
        if not effective_id:
            return None

        credential = self.store.get(effective_id)
        if credential is not None and credential.bearer and not force_refresh:
            return credential.bearer

        await self.add_or_update_from_challenge(info, host, force_refresh, client_id)
        credential = self.store.get(effective_id)
        return credential.bearer if credential else None

    async def get_token_for_host(
        self, host: Optional[str], force_refresh: bool = False
    ) -> Optional[str]:
        """Get the token for the client last challenged for by ``host``, if any."""
        client_id = self.store.route_for(host)
        if client_id is None:
            return None
        return await self.get_token_for_client(client_id, force_refresh)

    async def get_auth_header_for_client(
        self, client_id: str, force_refresh: bool = False
    ) -> Optional[str]:
        token = await self.get_token_for_client(client_id, force_refresh)
        return f"Bearer {token}" if token else None

    async def get_auth_header_for_host(
        self, host: Optional[str], force_refresh: bool = False
    ) -> Optional[str]:
        token = await self.get_token_for_host(host, force_refresh)
        return f"Bearer {token}" if token else None

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_cached_credential_info(self, client_id: str) -> Optional[dict[str, Any]]:
        """Redacted view of a client's cached credential (secrets masked)."""
        credential = self.store.get(client_id)
        if credential is None:
            return None
        info = credential.redacted()
        info["auto_refresh_scheduled"] = self.scheduler.is_scheduled(client_id)
        return info

    def list_clients(self) -> list[str]:
        return self.store.client_ids()

    async def close(self) -> None:
        """Stop scheduled refreshes and close the identity-provider client if owned."""
        await self.scheduler.close()
        if self._owns_api_client and hasattr(self.api_client, "close"):
            await self.api_client.close()
        logger.debug("Closed token provider")

    async def __aenter__(self) -> "TokenProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["TokenProvider", "ChallengeInput"]
