"""Tests for AuthenticatingHandler - bearer attachment and 401 retry."""

import io
import logging
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from multidict import CIMultiDict

from tokenrelay.auth.handler import AuthenticatingHandler, request_host
from tokenrelay.auth.models import Credential, DefaultSettings
from tokenrelay.auth.provider import TokenProvider

SERVER_URL = "https://idp.example.com"
ORDERS_URL = "https://orders.example.com/v1/orders"


class MockApiClient:
    """Mock identity provider returning numbered tokens."""

    def __init__(self):
        self.calls = []

    async def post(self, server_url, path, body):
        self.calls.append((server_url, path, body))
        return {"id_token": f"id_{len(self.calls)}"}


def _response(status, challenge=None):
    response = MagicMock()
    response.status = status
    response.headers = CIMultiDict()
    if challenge:
        response.headers.add("WWW-Authenticate", challenge)
    response.release = MagicMock()
    return response


def _session(*responses):
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.request = AsyncMock(side_effect=list(responses))
    return session


def _sent_headers(session, call_index):
    return session.request.call_args_list[call_index][1]["headers"]


@pytest.fixture
def api_client():
    return MockApiClient()


@pytest.fixture
async def provider(api_client):
    provider = TokenProvider(
        DefaultSettings(server_url=SERVER_URL, refresh_token="rt"), api_client=api_client
    )
    yield provider
    await provider.close()


class TestRequestHost:
    def test_extracts_hostname(self):
        assert request_host("https://Orders.Example.com:8443/v1?x=1") == "orders.example.com"

    def test_no_host(self):
        assert request_host("/relative/path") is None


class TestPassThrough:
    async def test_no_provider(self):
        """Should send the request unchanged without a provider."""
        session = _session(_response(401))
        handler = AuthenticatingHandler(session=session)

        response = await handler.get(ORDERS_URL, headers={"X-Trace": "1"})

        assert response.status == 401
        assert session.request.await_count == 1
        assert dict(_sent_headers(session, 0)) == {"X-Trace": "1"}

    async def test_success_returned_unchanged(self, provider):
        ok = _response(200)
        session = _session(ok)
        handler = AuthenticatingHandler(provider, session=session)

        assert await handler.get(ORDERS_URL) is ok
        assert session.request.await_count == 1

    async def test_other_errors_not_retried(self, provider):
        session = _session(_response(500))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        response = await handler.post(ORDERS_URL, json={"a": 1})

        assert response.status == 500
        assert session.request.await_count == 1
        assert session.request.call_args[1]["json"] == {"a": 1}


class TestInitialToken:
    """Tests for choosing the bearer before the first attempt."""

    async def test_configured_client_id(self, provider):
        session = _session(_response(200))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        await handler.get(ORDERS_URL)

        assert _sent_headers(session, 0)["Authorization"] == "Bearer id_1"

    async def test_host_route(self, provider):
        await provider.add_or_update_client(Credential(client_id="xyz"))
        provider.store.record_route("orders.example.com", "xyz")
        session = _session(_response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.get(ORDERS_URL)

        assert _sent_headers(session, 0)["Authorization"] == "Bearer id_1"

    async def test_unknown_host_unauthenticated(self, provider, api_client):
        session = _session(_response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.get(ORDERS_URL)

        assert "Authorization" not in _sent_headers(session, 0)
        assert api_client.calls == []


class TestUnauthorizedRetry:
    """Tests for the 401 challenge flow."""

    async def test_challenge_refreshes_and_retries_once(self, provider, api_client):
        first = _response(401, 'Bearer realm="tenant.auth0.com", scope="client_id=xyz"')
        ok = _response(200)
        session = _session(first, ok)
        handler = AuthenticatingHandler(provider, session=session)

        response = await handler.get(ORDERS_URL)

        assert response is ok
        assert session.request.await_count == 2
        first.release.assert_called_once()
        assert "Authorization" not in _sent_headers(session, 0)
        assert _sent_headers(session, 1)["Authorization"] == "Bearer id_1"
        assert api_client.calls[0][0] == "https://tenant.auth0.com"

    async def test_route_used_for_later_requests(self, provider, api_client):
        session = _session(
            _response(401, 'Bearer realm="tenant.auth0.com", scope="client_id=xyz"'),
            _response(200),
            _response(200),
        )
        handler = AuthenticatingHandler(provider, session=session)

        await handler.get(ORDERS_URL)
        await handler.get("https://orders.example.com/v1/orders/42")

        assert provider.store.route_for("orders.example.com") == "xyz"
        assert _sent_headers(session, 2)["Authorization"] == "Bearer id_1"
        assert len(api_client.calls) == 1

    async def test_does_not_retry_twice(self, provider):
        """Should return the second 401 rather than looping."""
        challenge = 'Bearer scope="client_id=xyz"'
        session = _session(_response(401, challenge), _response(401, challenge))
        handler = AuthenticatingHandler(provider, session=session)

        response = await handler.get(ORDERS_URL)

        assert response.status == 401
        assert session.request.await_count == 2

    async def test_stale_token_is_force_refreshed(self, provider, api_client):
        session = _session(_response(401), _response(200))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        await handler.get(ORDERS_URL)

        assert _sent_headers(session, 0)["Authorization"] == "Bearer id_1"
        assert _sent_headers(session, 1)["Authorization"] == "Bearer id_2"
        assert len(api_client.calls) == 2

    async def test_configured_client_id_recorded_for_host(self, provider):
        session = _session(_response(401), _response(200))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        await handler.get(ORDERS_URL)

        assert provider.store.route_for("orders.example.com") == "abc"

    async def test_challenge_without_client_id(self, provider, api_client):
        """Should retry unauthenticated when no client id is known."""
        session = _session(_response(401, 'Bearer realm="tenant.auth0.com"'), _response(401))
        handler = AuthenticatingHandler(provider, session=session)

        response = await handler.get(ORDERS_URL)

        assert response.status == 401
        assert session.request.await_count == 2
        assert "Authorization" not in _sent_headers(session, 1)
        assert api_client.calls == []

    async def test_caller_headers_preserved(self, provider):
        session = _session(_response(401, 'Bearer scope="client_id=xyz"'), _response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.put(ORDERS_URL, headers={"X-Trace": "abc"}, data=b"payload")

        retry = session.request.call_args_list[1]
        assert retry[0] == ("PUT", ORDERS_URL)
        assert retry[1]["headers"]["X-Trace"] == "abc"
        assert retry[1]["data"] == b"payload"


class TestCallerHeaders:
    """Tests for Authorization headers supplied by the caller."""

    async def test_lowercase_authorization_replaced(self, provider):
        session = _session(_response(200))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        await handler.get(ORDERS_URL, headers={"authorization": "Bearer stale"})

        sent = _sent_headers(session, 0)
        assert sent.getall("Authorization") == ["Bearer id_1"]

    async def test_stale_authorization_replaced_on_retry(self, provider):
        session = _session(_response(401, 'Bearer scope="client_id=xyz"'), _response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.get(ORDERS_URL, headers={"authorization": "Bearer stale"})

        assert _sent_headers(session, 0).getall("Authorization") == ["Bearer stale"]
        assert _sent_headers(session, 1).getall("Authorization") == ["Bearer id_1"]

    async def test_stale_authorization_dropped_without_token(self, provider):
        session = _session(_response(401), _response(401))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.get(ORDERS_URL, headers={"AUTHORIZATION": "Bearer stale"})

        assert "Authorization" not in _sent_headers(session, 1)

    async def test_rejected_retry_logged(self, provider, caplog):
        challenge = 'Bearer scope="client_id=xyz"'
        session = _session(_response(401, challenge), _response(403))
        handler = AuthenticatingHandler(provider, session=session)

        with caplog.at_level(logging.WARNING, logger="tokenrelay.auth.handler"):
            response = await handler.get(ORDERS_URL)

        assert response.status == 403
        assert caplog.records[-1].message == "Request still rejected after refreshing token"
        assert caplog.records[-1].http_status == 403


class TestOneShotBodies:
    """Tests for bodies that can only be read once."""

    async def test_async_generator_resent_on_retry(self, provider):
        async def chunks():
            yield b"first,"
            yield b"second"

        session = _session(_response(401, 'Bearer scope="client_id=xyz"'), _response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.post(ORDERS_URL, data=chunks())

        assert session.request.call_args_list[0][1]["data"] == b"first,second"
        assert session.request.call_args_list[1][1]["data"] == b"first,second"

    async def test_file_object_resent_on_retry(self, provider):
        session = _session(_response(401, 'Bearer scope="client_id=xyz"'), _response(200))
        handler = AuthenticatingHandler(provider, session=session)

        await handler.put(ORDERS_URL, data=io.BytesIO(b"payload"))

        assert session.request.call_args_list[1][1]["data"] == b"payload"

    async def test_json_body_untouched(self, provider):
        session = _session(_response(200))
        handler = AuthenticatingHandler(provider, client_id="abc", session=session)

        await handler.post(ORDERS_URL, json={"a": 1})

        assert "data" not in session.request.call_args[1]


class TestSessionLifecycle:
    async def test_delete_shortcut(self):
        session = _session(_response(204))
        handler = AuthenticatingHandler(session=session)

        await handler.delete(ORDERS_URL)

        assert session.request.call_args[0] == ("DELETE", ORDERS_URL)

    async def test_injected_session_not_closed(self):
        session = _session()
        async with AuthenticatingHandler(session=session):
            pass
        session.close.assert_not_called()

    async def test_owned_session_closed(self):
        handler = AuthenticatingHandler()
        session = await handler._ensure_session()
        assert isinstance(session, aiohttp.ClientSession)

        await handler.close()

        assert session.closed
