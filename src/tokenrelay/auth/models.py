"""Credential data models and default settings."""

from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any

# Fields a caller may supply on a partial Credential; bearer/last_refresh are
# owned by the refresh path and never overlaid from caller input.
CONFIG_FIELDS = (
    "server_url",
    "username",
    "password",
    "connection",
    "realm",
    "grant_type",
    "client_secret",
    "audience",
    "refresh_token",
    "auto_refresh_after",
)

# Fields filled from DefaultSettings when still unset after the overlay.
DEFAULTED_FIELDS = (
    "server_url",
    "username",
    "password",
    "connection",
    "refresh_token",
    "client_secret",
    "audience",
    "auto_refresh_after",
)

SECRET_FIELDS = frozenset({"password", "client_secret", "refresh_token", "bearer"})


def is_unset(value: Any) -> bool:
    """A field counts as unset when it is None or a blank string."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def mask_secret(value: str | None) -> str | None:
    """Mask a secret, keeping only the last four characters for correlation."""
    if value is None:
        return None
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


@dataclass(frozen=True)
class Credential:
    """
    Cached per-client authentication configuration plus the latest bearer token.

    Instances are immutable snapshots; the store replaces them wholesale, so a
    reader never observes a half-written bearer/last_refresh pair.

    Attributes:
        client_id: Identity-provider application id (primary key)
        server_url: Base URL of the identity provider
        username: Resource-owner username
        password: Resource-owner password
        connection: Identity-provider connection name (resource-owner grant)
        realm: Realm for the password-realm grant
        grant_type: Grant type override for the password-realm grant
        client_secret: Client secret for the client-credentials grant
        audience: API audience for client-credentials / password-realm grants
        refresh_token: Refresh token for the delegation grant
        bearer: Most recently issued bearer token (None until first success)
        last_refresh: UTC timestamp of the last successful refresh (None = never)
        auto_refresh_after: Proactive refresh interval. None means "use the
            default"; zero or negative disables scheduling.
    """

    client_id: str
    server_url: str | None = None
    username: str | None = None
    password: str | None = None
    connection: str | None = None
    realm: str | None = None
    grant_type: str | None = None
    client_secret: str | None = None
    audience: str | None = None
    refresh_token: str | None = None
    bearer: str | None = None
    last_refresh: datetime | None = None
    auto_refresh_after: timedelta | None = None

    @property
    def authorization_header(self) -> str | None:
        """Authorization header value, or None when no bearer is cached."""
        if not self.bearer:
            return None
        return f"Bearer {self.bearer}"

    @property
    def auto_refresh_enabled(self) -> bool:
        return self.auto_refresh_after is not None and self.auto_refresh_after > timedelta(0)

    def is_fresh(self, window_seconds: float, now: datetime | None = None) -> bool:
        """
        Check whether the bearer was refreshed within the freshness window.

        Args:
            window_seconds: Width of the freshness window
            now: Reference time (default: current UTC time)

        Returns:
            True if a bearer is cached and was obtained less than
            window_seconds ago
        """
        if not self.bearer or self.last_refresh is None:
            return False
        now = now or datetime.now(UTC)
        return self.last_refresh > now - timedelta(seconds=window_seconds)

    def overlay(self, partial: "Credential") -> "Credential":
        """Return a copy with every supplied config field of ``partial`` applied."""
        changes = {
            name: getattr(partial, name)
            for name in CONFIG_FIELDS
            if not is_unset(getattr(partial, name))
        }
        return replace(self, **changes) if changes else self

    def with_bearer(self, bearer: str, refreshed_at: datetime) -> "Credential":
        return replace(self, bearer=bearer, last_refresh=refreshed_at)

    def redacted(self) -> dict[str, Any]:
        """Diagnostics view with secrets masked."""
        data = asdict(self)
        for name in SECRET_FIELDS:
            data[name] = mask_secret(data[name])
        if self.last_refresh is not None:
            data["last_refresh"] = self.last_refresh.isoformat()
        if self.auto_refresh_after is not None:
            data["auto_refresh_after"] = self.auto_refresh_after.total_seconds()
        return data


@dataclass
class DefaultSettings:
    """
    Process-wide defaults used to fill any Credential field a caller left unset.

    Attributes:
        server_url: Default identity-provider base URL
        username: Default resource-owner username
        password: Default resource-owner password
        connection: Default identity-provider connection
        refresh_token: Default refresh token
        client_secret: Default client secret
        audience: Default API audience
        auto_refresh_after: Default proactive refresh interval (None/<=0 disables)
    """

    server_url: str | None = None
    username: str | None = None
    password: str | None = None
    connection: str | None = None
    refresh_token: str | None = None
    client_secret: str | None = None
    audience: str | None = None
    auto_refresh_after: timedelta | None = None

    def apply(self, credential: Credential) -> Credential:
        """Fill unset fields of ``credential`` from these defaults."""
        changes = {}
        for name in DEFAULTED_FIELDS:
            default = getattr(self, name)
            if is_unset(getattr(credential, name)) and not is_unset(default):
                changes[name] = default
        return replace(credential, **changes) if changes else credential


@dataclass
class ServiceSettings:
    """
    Settings describing a downstream service and how to authenticate against it.

    Attributes:
        uri: Service base URI
        basic_auth_user: Basic-auth user (not used for bearer auth)
        basic_auth_password: Basic-auth password (not used for bearer auth)
        auth0_user: Identity-provider username
        auth0_password: Identity-provider password
        auth0_client_id: Identity-provider client id
        auth0_refresh_token: Identity-provider refresh token
    """

    uri: str | None = None
    basic_auth_user: str | None = None
    basic_auth_password: str | None = None
    auth0_user: str | None = None
    auth0_password: str | None = None
    auth0_client_id: str | None = None
    auth0_refresh_token: str | None = None

    def to_credential(self) -> Credential:
        """Map the identity-provider fields onto a partial Credential."""
        return Credential(
            client_id=self.auth0_client_id,
            refresh_token=self.auth0_refresh_token,
            password=self.auth0_password,
            username=self.auth0_user,
        )


@dataclass(frozen=True)
class ChallengeInfo:
    """Routing information recovered from a Bearer authentication challenge."""

    server_url: str | None = None
    client_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.server_url is None and self.client_id is None

    def to_credential(self) -> Credential | None:
        """Partial Credential for the challenged client, or None without a client id."""
        if not self.client_id:
            return None
        return Credential(client_id=self.client_id, server_url=self.server_url)


__all__ = [
    "Credential",
    "DefaultSettings",
    "ServiceSettings",
    "ChallengeInfo",
    "CONFIG_FIELDS",
    "DEFAULTED_FIELDS",
    "is_unset",
    "mask_secret",
]
