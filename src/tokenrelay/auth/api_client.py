"""HTTP client for the identity provider's authentication API."""

import asyncio
import logging
from typing import Any

import aiohttp

from tokenrelay.auth.exceptions import AuthenticationFailedError, InvalidConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30

# Sub-paths relative to the identity provider base URL
DELEGATION_PATH = "delegation"
RESOURCE_OWNER_PATH = "oauth/ro"
TOKEN_PATH = "oauth/token"


def build_url(server_url: str, path: str) -> str:
    """Join base URL and sub-path, normalizing the base to end with '/'."""
    if not server_url:
        raise InvalidConfigurationError("No identity provider server URL configured")
    base = server_url if server_url.endswith("/") else f"{server_url}/"
    return base + path.lstrip("/")


class AuthenticationApiClient:
    """
    JSON POST primitive against the identity provider.

    Each call posts a JSON body (None values omitted) and returns the parsed
    JSON response. Any transport failure or non-2xx response raises
    AuthenticationFailedError.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._session = session
        self._owns_session = session is None
        self.timeout_seconds = timeout_seconds

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def post(self, server_url: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON body to ``server_url`` + ``path``.

        Args:
            server_url: Identity provider base URL
            path: Fixed sub-path (delegation, oauth/ro, oauth/token)
            body: JSON-serializable request body

        Returns:
            Parsed JSON response body

        Raises:
            InvalidConfigurationError: If no server URL is configured
            AuthenticationFailedError: On transport error or non-2xx response
        """
        url = build_url(server_url, path)
        payload = {key: value for key, value in body.items() if value is not None}
        session = await self._ensure_session()

        try:
            async with session.post(
                url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status < 200 or response.status >= 300:
                    error_text = await response.text()
                    logger.debug(
                        "Identity provider rejected request",
                        extra={"http_status": response.status, "api_endpoint": url},
                    )
                    raise AuthenticationFailedError(
                        f"Error processing request. Status code was {response.status} "
                        f"when calling '{url}', message was '{error_text[:200]}'",
                        status=response.status,
                        context={"api_endpoint": url},
                    )

                data = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise AuthenticationFailedError(
                f"HTTP error calling '{url}': {e}", cause=e, context={"api_endpoint": url}
            ) from e
        except asyncio.TimeoutError as e:
            raise AuthenticationFailedError(
                f"Timeout after {self.timeout_seconds}s calling '{url}'",
                cause=e,
                context={"api_endpoint": url},
            ) from e

        if not isinstance(data, dict):
            raise AuthenticationFailedError(
                f"Unexpected response body from '{url}'", context={"api_endpoint": url}
            )
        return data

    async def close(self) -> None:
        """Close HTTP client session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)


__all__ = [
    "AuthenticationApiClient",
    "build_url",
    "DEFAULT_TIMEOUT_SECONDS",
    "DELEGATION_PATH",
    "RESOURCE_OWNER_PATH",
    "TOKEN_PATH",
]
