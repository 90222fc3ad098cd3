"""
Thread-safe credential store with host routing.

Credentials are kept per client id as immutable snapshots. Every mutation
replaces the snapshot under the store lock, so readers always see a
consistent bearer/last_refresh pair without further locking.

A second map remembers which client id a host asked for in its last
authentication challenge, so later requests to that host can be
authenticated up front.

Example:
    >>> store = CredentialStore(DefaultSettings(server_url="https://idp.example.com"))
    >>> store.upsert(Credential(client_id="abc", username="svc", password="pw"))
    >>> store.get("abc").server_url
    'https://idp.example.com'
"""

import logging
import threading
from datetime import datetime
from typing import Dict, Optional

from tokenrelay.auth.exceptions import InvalidConfigurationError, MissingCredentialError
from tokenrelay.auth.models import Credential, DefaultSettings, is_unset

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Concurrent mapping from client id to its cached Credential.

    There is no eviction: the store grows with the number of distinct client
    ids seen and lives as long as its owner.
    """

    def __init__(self, defaults: Optional[DefaultSettings] = None):
        self.defaults = defaults or DefaultSettings()
        self._credentials: Dict[str, Credential] = {}
        self._routes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def upsert(self, partial: Credential) -> Credential:
        """
        Insert or merge a Credential.

        Supplied fields of ``partial`` overlay the stored entry; the cached
        bearer and last_refresh of an existing entry are kept; fields still
        unset afterwards are filled from the defaults.

        Args:
            partial: Credential carrying at least a client id

        Returns:
            The stored snapshot after the merge

        Raises:
            InvalidConfigurationError: If the client id is missing
        """
        if is_unset(partial.client_id):
            raise InvalidConfigurationError("A client_id is required to register a credential")

        with self._lock:
            existing = self._credentials.get(partial.client_id)
            if existing is None:
                base = Credential(client_id=partial.client_id)
            else:
                base = existing
            merged = self.defaults.apply(base.overlay(partial))
            self._credentials[partial.client_id] = merged

        if existing is None:
            logger.debug(
                "Registered credential",
                extra={"client_id": partial.client_id, "server_url": merged.server_url},
            )
        return merged

    def get(self, client_id: Optional[str]) -> Optional[Credential]:
        """Return the current snapshot for a client id, or None if unknown."""
        if client_id is None:
            return None
        with self._lock:
            return self._credentials.get(client_id)

    def record_refresh(self, client_id: str, bearer: str, refreshed_at: datetime) -> Credential:
        """
        Store a new bearer together with its refresh timestamp.

        Raises:
            MissingCredentialError: If the client id was never registered
        """
        with self._lock:
            current = self._credentials.get(client_id)
            if current is None:
                raise MissingCredentialError(client_id)
            updated = current.with_bearer(bearer, refreshed_at)
            self._credentials[client_id] = updated
            return updated

    def record_route(self, host: str, client_id: str) -> None:
        """Remember the client id a host challenged for (last write wins)."""
        if not host or not client_id:
            return
        with self._lock:
            previous = self._routes.get(host)
            self._routes[host] = client_id

        if previous != client_id:
            logger.debug(
                "Recorded host route",
                extra={"host": host, "client_id": client_id},
            )

    def route_for(self, host: Optional[str]) -> Optional[str]:
        if not host:
            return None
        with self._lock:
            return self._routes.get(host)

    def client_ids(self) -> list[str]:
        with self._lock:
            return list(self._credentials.keys())

    def routes(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._routes)

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._credentials

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)


__all__ = ["CredentialStore"]
