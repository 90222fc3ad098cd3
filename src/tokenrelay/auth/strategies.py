"""
Grant strategies for exchanging a Credential for a bearer token.

The strategy is derived from which fields are populated on the Credential
snapshot at refresh time:

    refresh_token                 -> DELEGATION
    client_secret + audience      -> CLIENT_CREDENTIALS
    realm                         -> PASSWORD_REALM
    otherwise (username/password) -> RESOURCE_OWNER

Each strategy performs exactly one POST against the identity provider.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from tokenrelay.auth.api_client import (
    DELEGATION_PATH,
    RESOURCE_OWNER_PATH,
    TOKEN_PATH,
)
from tokenrelay.auth.exceptions import AuthenticationFailedError, InvalidConfigurationError
from tokenrelay.auth.models import Credential, is_unset, mask_secret
from tokenrelay.auth.schemas import TokenResponse
from tokenrelay.errors.exceptions import TokenRelayError
from tokenrelay.types import IdentityProviderClient

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
PASSWORD_REALM_GRANT_TYPE = "http://auth0.com/oauth/grant-type/password-realm"
PASSWORD_GRANT_TYPE = "password"
CLIENT_CREDENTIALS_GRANT_TYPE = "client_credentials"
OPENID_SCOPE = "openid"


class StrategyKind(Enum):
    DELEGATION = "delegation"
    RESOURCE_OWNER = "resource_owner"
    PASSWORD_REALM = "password_realm"
    CLIENT_CREDENTIALS = "client_credentials"


def select_strategy(credential: Credential) -> StrategyKind:
    """Pick the grant strategy from the populated fields of a Credential."""
    if not is_unset(credential.refresh_token):
        return StrategyKind.DELEGATION
    if not is_unset(credential.client_secret) and not is_unset(credential.audience):
        return StrategyKind.CLIENT_CREDENTIALS
    if not is_unset(credential.realm):
        return StrategyKind.PASSWORD_REALM
    return StrategyKind.RESOURCE_OWNER


def _delegation_body(credential: Credential) -> dict[str, Any]:
    return {
        "client_id": credential.client_id,
        "target": credential.client_id,
        "refresh_token": credential.refresh_token,
        "grant_type": JWT_BEARER_GRANT_TYPE,
        "scope": OPENID_SCOPE,
        "api_type": "app",
    }


def _resource_owner_body(credential: Credential) -> dict[str, Any]:
    return {
        "client_id": credential.client_id,
        "username": credential.username,
        "password": credential.password,
        "connection": credential.connection,
        "scope": OPENID_SCOPE,
        "grant_type": PASSWORD_GRANT_TYPE,
        "device": "api",
    }


def _password_realm_body(credential: Credential) -> dict[str, Any]:
    return {
        "client_id": credential.client_id,
        "username": credential.username,
        "password": credential.password,
        "realm": credential.realm,
        "audience": credential.audience,
        "grant_type": credential.grant_type or PASSWORD_REALM_GRANT_TYPE,
    }


def _client_credentials_body(credential: Credential) -> dict[str, Any]:
    return {
        "client_id": credential.client_id,
        "client_secret": credential.client_secret,
        "audience": credential.audience,
        "grant_type": CLIENT_CREDENTIALS_GRANT_TYPE,
    }


@dataclass(frozen=True)
class StrategySpec:
    """Request shape of one grant strategy."""

    path: str
    build_body: Callable[[Credential], dict[str, Any]]
    token_field: str
    fallback_field: str


STRATEGIES: dict[StrategyKind, StrategySpec] = {
    StrategyKind.DELEGATION: StrategySpec(
        DELEGATION_PATH, _delegation_body, "id_token", "access_token"
    ),
    StrategyKind.RESOURCE_OWNER: StrategySpec(
        RESOURCE_OWNER_PATH, _resource_owner_body, "id_token", "access_token"
    ),
    StrategyKind.PASSWORD_REALM: StrategySpec(
        TOKEN_PATH, _password_realm_body, "access_token", "id_token"
    ),
    StrategyKind.CLIENT_CREDENTIALS: StrategySpec(
        TOKEN_PATH, _client_credentials_body, "access_token", "id_token"
    ),
}


def build_request(kind: StrategyKind, credential: Credential) -> tuple[str, dict[str, Any]]:
    """Return the (sub-path, body) pair a strategy posts."""
    spec = STRATEGIES[kind]
    return spec.path, spec.build_body(credential)


def extract_bearer(kind: StrategyKind, response: dict[str, Any]) -> str | None:
    """
    Take the strategy's token field from a response, falling back to the other one.

    Raises:
        pydantic.ValidationError: If the response fields have the wrong types
    """
    spec = STRATEGIES[kind]
    parsed = TokenResponse.model_validate(response)
    return parsed.token(spec.token_field, spec.fallback_field)


def identity_hint(kind: StrategyKind, credential: Credential) -> str:
    """Describe what identified the caller, without leaking secrets."""
    if kind is StrategyKind.DELEGATION:
        return f"refresh token {mask_secret(credential.refresh_token)}"
    if kind is StrategyKind.CLIENT_CREDENTIALS:
        return "client secret"
    return f"user {credential.username}"


@dataclass(frozen=True)
class AuthenticationResult:
    """Outcome of a successful exchange."""

    kind: StrategyKind
    bearer: str


class TokenAuthenticator:
    """
    Executes the grant strategy selected for a Credential.

    Usage:
        authenticator = TokenAuthenticator(AuthenticationApiClient())
        result = await authenticator.authenticate(credential)
        headers = {"Authorization": f"Bearer {result.bearer}"}
    """

    def __init__(self, api_client: IdentityProviderClient):
        self.api_client = api_client

    async def authenticate(self, credential: Credential) -> AuthenticationResult:
        """
        Exchange a Credential for a bearer token.

        Raises:
            InvalidConfigurationError: If no server URL is configured
            AuthenticationFailedError: If the exchange fails for any reason
        """
        kind = select_strategy(credential)

        if is_unset(credential.server_url):
            raise InvalidConfigurationError(
                f"No identity provider server URL for client {credential.client_id}",
                context={"client_id": credential.client_id, "strategy": kind.value},
            )

        path, body = build_request(kind, credential)
        context = {
            "client_id": credential.client_id,
            "strategy": kind.value,
            "identity": identity_hint(kind, credential),
        }

        try:
            response = await self.api_client.post(credential.server_url, path, body)
        except TokenRelayError as e:
            e.context = {**context, **e.context}
            raise
        except Exception as e:
            raise AuthenticationFailedError(
                f"Authentication failed for client {credential.client_id}: {e}",
                cause=e,
                context=context,
            ) from e

        try:
            bearer = extract_bearer(kind, response)
        except ValidationError as e:
            raise AuthenticationFailedError(
                f"Malformed identity provider response for client {credential.client_id}",
                cause=e,
                context=context,
            ) from e

        if not bearer:
            raise AuthenticationFailedError(
                f"No token in identity provider response for client {credential.client_id}",
                context=context,
            )

        logger.debug(
            "Exchanged credential for bearer token",
            extra={"client_id": credential.client_id, "strategy": kind.value},
        )
        return AuthenticationResult(kind=kind, bearer=bearer)


__all__ = [
    "StrategyKind",
    "StrategySpec",
    "STRATEGIES",
    "AuthenticationResult",
    "TokenAuthenticator",
    "select_strategy",
    "build_request",
    "extract_bearer",
    "identity_hint",
    "JWT_BEARER_GRANT_TYPE",
    "PASSWORD_REALM_GRANT_TYPE",
    "PASSWORD_GRANT_TYPE",
    "CLIENT_CREDENTIALS_GRANT_TYPE",
]
