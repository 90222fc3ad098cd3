"""
Proactive bearer refresh timers.

After every successful refresh the coordinator hands the new snapshot to the
scheduler, which arms a one-shot timer for ``auto_refresh_after``. When the
timer fires the refresh callback runs as an asyncio task; a successful refresh
re-arms the timer through the coordinator again.

Usage:
    scheduler = AutoRefreshScheduler(lambda cid: coordinator.ensure_fresh(cid))
    coordinator.attach_scheduler(scheduler)
    ...
    await scheduler.close()
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from tokenrelay.auth.models import Credential
from tokenrelay.logging.utilities import log_exception

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[str], Awaitable[Any]]


class _RefreshTrigger:
    """One reusable timer per client id."""

    def __init__(self, client_id: str, loop: asyncio.AbstractEventLoop, on_fire: Callable[[str], None]):
        self.client_id = client_id
        self.loop = loop
        self._on_fire = on_fire
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def rearm(self, delay_seconds: float) -> None:
        self.cancel()
        self._handle = self.loop.call_later(delay_seconds, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._on_fire(self.client_id)


class AutoRefreshScheduler:
    """
    Keeps one refresh timer per client id.

    Timers fire once; a failed scheduled refresh is logged and not retried
    until something else refreshes the client successfully.
    """

    def __init__(self, refresh_callback: RefreshCallback):
        self.refresh_callback = refresh_callback
        self._triggers: dict[str, _RefreshTrigger] = {}
        self._tasks: set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def schedule_refresh(self, credential: Credential) -> None:
        """Arm (or re-arm) the refresh timer for a credential."""
        client_id = credential.client_id
        if not credential.auto_refresh_enabled:
            logger.debug(
                "Automatic token refresh is disabled",
                extra={"client_id": client_id},
            )
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, cannot schedule token refresh",
                extra={"client_id": client_id},
            )
            return

        delay = credential.auto_refresh_after.total_seconds()
        with self._lock:
            trigger = self._triggers.get(client_id)
            if trigger is None or trigger.loop is not loop:
                if trigger is not None:
                    trigger.cancel()
                trigger = _RefreshTrigger(client_id, loop, self._start_refresh)
                self._triggers[client_id] = trigger
            trigger.rearm(delay)

        logger.debug(
            f"Scheduled token refresh in {delay}s",
            extra={"client_id": client_id},
        )

    def _start_refresh(self, client_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._execute_refresh(client_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute_refresh(self, client_id: str) -> None:
        logger.debug("Running scheduled token refresh", extra={"client_id": client_id})
        try:
            await self.refresh_callback(client_id)
        except Exception as e:
            log_exception(
                logger,
                e,
                "Scheduled token refresh failed",
                include_traceback=False,
                client_id=client_id,
            )

    def is_scheduled(self, client_id: str) -> bool:
        with self._lock:
            trigger = self._triggers.get(client_id)
            return trigger is not None and trigger.armed

    def scheduled_clients(self) -> list[str]:
        with self._lock:
            return [cid for cid, trigger in self._triggers.items() if trigger.armed]

    def cancel(self, client_id: str) -> bool:
        """Disarm a client's timer. Returns True if one was armed."""
        with self._lock:
            trigger = self._triggers.get(client_id)
            if trigger is None or not trigger.armed:
                return False
            trigger.cancel()
            return True

    async def close(self) -> None:
        """Cancel all timers and wait for in-flight scheduled refreshes to stop."""
        with self._lock:
            for trigger in self._triggers.values():
                trigger.cancel()
            self._triggers.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


__all__ = ["AutoRefreshScheduler", "RefreshCallback"]
