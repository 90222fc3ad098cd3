"""
aiohttp request wrapper that attaches bearer tokens and reacts to 401 challenges.

Usage:
    async with AuthenticatingHandler(provider, client_id="abc") as http:
        response = await http.get("https://api.example.com/orders")
        async with response:
            data = await response.json()
"""

import io
import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import aiohttp
from multidict import CIMultiDict

from tokenrelay.auth.challenge import challenge_from_headers
from tokenrelay.auth.provider import TokenProvider
from tokenrelay.errors.exceptions import classify_http_status
from tokenrelay.types import ErrorCategory

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"


def request_host(url: Any) -> Optional[str]:
    return urlsplit(str(url)).hostname


async def _buffer_body(data: Any) -> Any:
    """Read a one-shot request body into bytes so it can be sent twice."""
    if isinstance(data, io.IOBase):
        return data.read()
    if hasattr(data, "__aiter__"):
        return b"".join([chunk async for chunk in data])
    return data


class AuthenticatingHandler:
    """
    Sends HTTP requests with a bearer token from a TokenProvider.

    Before sending, the token comes from the configured client id, else from
    the client id last routed to the request host, else the request goes out
    unauthenticated. A 401 response triggers a forced refresh for the client
    named in the ``WWW-Authenticate`` challenge (falling back to the
    configured client id) and exactly one retry. The retry's response is
    returned whatever its status.

    Any ``Authorization`` header the caller passes, in whatever case, is
    replaced by the provider's bearer. File objects and async iterables given
    as ``data`` are read into memory up front so the retry can resend them.

    Without a provider, requests pass straight through.
    """

    def __init__(
        self,
        provider: Optional[TokenProvider] = None,
        client_id: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.provider = provider
        self.client_id = client_id or None
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _initial_token(self, host: Optional[str]) -> Optional[str]:
        if self.client_id:
            return await self.provider.get_token_for_client(self.client_id)
        return await self.provider.get_token_for_host(host)

    @staticmethod
    def _set_bearer(headers: CIMultiDict, token: Optional[str]) -> None:
        headers.popall(AUTHORIZATION_HEADER, None)
        if token:
            headers[AUTHORIZATION_HEADER] = f"Bearer {token}"

    async def request(self, method: str, url: Any, **kwargs: Any) -> aiohttp.ClientResponse:
        """
        Send a request, authenticating and retrying once on 401.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Passed through to ``aiohttp.ClientSession.request``

        Returns:
            The response (the retry's response after a 401)
        """
        session = await self._ensure_session()
        headers = CIMultiDict(kwargs.pop("headers", None) or {})

        if self.provider is None:
            return await session.request(method, url, headers=headers, **kwargs)

        if kwargs.get("data") is not None:
            kwargs["data"] = await _buffer_body(kwargs["data"])

        host = request_host(url)
        token = await self._initial_token(host)
        if token:
            self._set_bearer(headers, token)

        response = await session.request(method, url, headers=CIMultiDict(headers), **kwargs)
        if response.status != 401:
            return response

        logger.warning(
            "Unauthorized request, trying to get a new token",
            extra={"http_status": response.status, "host": host},
        )
        challenge = challenge_from_headers(response.headers)
        response.release()

        token = await self.provider.get_token_for_challenge(
            challenge, host, force_refresh=True, client_id=self.client_id
        )
        self._set_bearer(headers, token)

        response = await session.request(method, url, headers=CIMultiDict(headers), **kwargs)
        if classify_http_status(response.status) is ErrorCategory.AUTH:
            logger.warning(
                "Request still rejected after refreshing token",
                extra={"http_status": response.status, "host": host},
            )
        return response

    async def get(self, url: Any, **kwargs: Any) -> aiohttp.ClientResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: Any, **kwargs: Any) -> aiohttp.ClientResponse:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: Any, **kwargs: Any) -> aiohttp.ClientResponse:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: Any, **kwargs: Any) -> aiohttp.ClientResponse:
        return await self.request("DELETE", url, **kwargs)

    async def close(self) -> None:
        """Close HTTP client session if this handler created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AuthenticatingHandler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["AuthenticatingHandler", "request_host", "AUTHORIZATION_HEADER"]
