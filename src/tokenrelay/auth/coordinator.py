"""Serialized bearer-token refresh with a bounded-wait gate."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Optional, Protocol

from tokenrelay.auth.exceptions import GateTimeoutError, MissingCredentialError
from tokenrelay.auth.models import Credential
from tokenrelay.auth.store import CredentialStore
from tokenrelay.auth.strategies import TokenAuthenticator, select_strategy
from tokenrelay.errors.exceptions import TokenRelayError
from tokenrelay.logging.context_managers import LogContext
from tokenrelay.logging.utilities import log_exception

logger = logging.getLogger(__name__)

DEFAULT_GATE_TIMEOUT_SECONDS = 5.0
DEFAULT_FRESHNESS_WINDOW_SECONDS = 5.0


class RefreshScheduler(Protocol):
    def schedule_refresh(self, credential: Credential) -> None: ...


class RefreshCoordinator:
    """
    Runs credential refreshes one at a time.

    All client ids of one coordinator share a single refresh gate, so at most
    one identity-provider call is in flight per instance. A caller that cannot
    acquire the gate within ``gate_timeout_seconds`` gives up without
    refreshing. Once inside the gate, a bearer refreshed less than
    ``freshness_window_seconds`` ago is reused unless the refresh is forced;
    this collapses a burst of concurrent refresh requests into one exchange.

    Strategy failures are logged and swallowed: the previously cached bearer
    stays in place and the caller gets the unchanged snapshot back.
    """

    def __init__(
        self,
        store: CredentialStore,
        authenticator: TokenAuthenticator,
        scheduler: Optional[RefreshScheduler] = None,
        gate_timeout_seconds: float = DEFAULT_GATE_TIMEOUT_SECONDS,
        freshness_window_seconds: float = DEFAULT_FRESHNESS_WINDOW_SECONDS,
    ):
        self.store = store
        self.authenticator = authenticator
        self.scheduler = scheduler
        self.gate_timeout_seconds = gate_timeout_seconds
        self.freshness_window_seconds = freshness_window_seconds
        self._gate = asyncio.Lock()

    def attach_scheduler(self, scheduler: RefreshScheduler) -> None:
        self.scheduler = scheduler

    @property
    def is_refreshing(self) -> bool:
        return self._gate.locked()

    async def ensure_fresh(
        self, client_id: str, force_refresh: bool = False
    ) -> Optional[Credential]:
        """
        Refresh a client's bearer unless a fresh one is already cached.

        Args:
            client_id: Registered client id
            force_refresh: Refresh even inside the freshness window

        Returns:
            The client's snapshot after the attempt (refreshed or not)

        Raises:
            MissingCredentialError: If the client id was never registered
        """
        if self.store.get(client_id) is None:
            raise MissingCredentialError(client_id)

        try:
            await asyncio.wait_for(self._gate.acquire(), timeout=self.gate_timeout_seconds)
        except asyncio.TimeoutError:
            log_exception(
                logger,
                GateTimeoutError(self.gate_timeout_seconds, client_id),
                "Could not acquire lock, skipping token refresh",
                level=logging.WARNING,
                include_traceback=False,
                client_id=client_id,
            )
            return self.store.get(client_id)

        try:
            return await self._refresh_locked(client_id, force_refresh)
        finally:
            self._gate.release()

    async def _refresh_locked(self, client_id: str, force_refresh: bool) -> Credential:
        credential = self.store.get(client_id)
        if credential is None:
            raise MissingCredentialError(client_id)

        if not force_refresh and credential.is_fresh(self.freshness_window_seconds):
            logger.debug(
                "Token was refreshed recently, reusing it",
                extra={"client_id": client_id},
            )
            return credential

        kind = select_strategy(credential)
        with LogContext(client_id=client_id, strategy=kind.value):
            try:
                result = await self.authenticator.authenticate(credential)
            except TokenRelayError as e:
                log_exception(
                    logger,
                    e,
                    "Failed to refresh token, keeping previous token",
                    include_traceback=False,
                    client_id=client_id,
                    strategy=kind.value,
                )
                return self.store.get(client_id) or credential

            updated = self.store.record_refresh(
                client_id, result.bearer, datetime.now(UTC)
            )
            logger.info(
                "Refreshed token",
                extra={"client_id": client_id, "strategy": kind.value},
            )

        if self.scheduler is not None:
            self.scheduler.schedule_refresh(updated)
        return updated


__all__ = [
    "RefreshCoordinator",
    "RefreshScheduler",
    "DEFAULT_GATE_TIMEOUT_SECONDS",
    "DEFAULT_FRESHNESS_WINDOW_SECONDS",
]
