"""Authentication-specific exceptions."""

from tokenrelay.errors.exceptions import AuthError, PermanentError, TransientError


class MissingCredentialError(PermanentError):
    """A refresh was requested for a client id that was never registered."""

    def __init__(self, client_id: str | None):
        super().__init__(
            f"Cannot update the auth token for client {client_id}, because of missing information",
            context={"client_id": client_id},
        )
        self.client_id = client_id


class AuthenticationFailedError(AuthError):
    """The identity provider exchange failed (transport, non-2xx or malformed body)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status = status


class GateTimeoutError(TransientError):
    """The refresh gate could not be acquired within the bounded wait."""

    def __init__(self, timeout_seconds: float, client_id: str | None = None):
        super().__init__(
            f"Could not acquire refresh lock within {timeout_seconds}s",
            context={"client_id": client_id, "gate_timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds
        self.client_id = client_id


class InvalidConfigurationError(PermanentError):
    """Credential configuration is incomplete or invalid."""

    pass


__all__ = [
    "MissingCredentialError",
    "AuthenticationFailedError",
    "GateTimeoutError",
    "InvalidConfigurationError",
]
