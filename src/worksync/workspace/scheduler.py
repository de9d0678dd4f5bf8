# src/worksync/workspace/scheduler.py

"""
Sync scheduler.

Turns bursts of local mutations into one outbound write:
- every dirty-mark re-arms a debounce countdown,
- when the countdown survives the quiescence window the *current* snapshot is written,
- at most one write is in flight; a failed write is not retried until the next mutation.

Status signal (for the UI layer):
    idle -> syncing -> synced -> idle
    idle -> syncing -> error  -> idle
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from ..core.ports import Sleep, StatusListener, SyncSource
from ..errors import SyncError
from .gateway import SyncGateway
from .models import Account

logger = logging.getLogger(__name__)


class TimerState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    FIRING = "firing"


class SyncStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class DebounceTimer:
    """
    Cancellable, restartable countdown.

    arm() drops a pending countdown and starts a new one. Once the callback has
    started it is never cancelled by arm(); a new countdown runs alongside it.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._sleep = sleep
        self._pending: asyncio.Task[None] | None = None
        self._firing: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> TimerState:
        if self._pending is not None:
            return TimerState.ARMED
        if self._firing:
            return TimerState.FIRING
        return TimerState.IDLE

    def arm(self) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._countdown())

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def _countdown(self) -> None:
        await self._sleep(self._delay)
        me = asyncio.current_task()
        if self._pending is not me:
            return
        self._pending = None
        # Hand over to a separate task so later cancel()/arm() can't interrupt the callback.
        fire = asyncio.get_running_loop().create_task(self._fire())
        self._firing.add(fire)
        fire.add_done_callback(self._firing.discard)

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Debounced callback failed")

    async def wait_idle(self) -> None:
        """Wait for in-flight callbacks (not for an armed countdown)."""
        while self._firing:
            await asyncio.gather(*list(self._firing), return_exceptions=True)


class SyncScheduler:
    def __init__(
        self,
        account: Account,
        source: SyncSource,
        gateway: SyncGateway,
        *,
        debounce_seconds: float = 1.5,
        status_display_seconds: float = 3.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._account = account
        self._source = source
        self._gateway = gateway
        self._display_s = max(0.0, float(status_display_seconds))
        self._sleep = sleep
        self._timer = DebounceTimer(debounce_seconds, self._sync_now, sleep=sleep)
        self._write_lock = asyncio.Lock()
        self._reset_task: asyncio.Task[None] | None = None
        self._listeners: list[StatusListener] = []

        self.status = SyncStatus.IDLE
        self.last_error: SyncError | None = None
        self.writes = 0

    @property
    def timer_state(self) -> TimerState:
        return self._timer.state

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SyncStatus) -> None:
        if status == self.status:
            return
        self.status = status
        logger.debug("Sync status account=%s -> %s", self._account.id, status.value)
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Sync status listener failed")

    def notify_dirty(self) -> None:
        """Called by the engine after every mutation."""
        if self._account.is_ephemeral:
            return
        self._timer.arm()

    async def _sync_now(self) -> None:
        async with self._write_lock:
            if not self._source.dirty:
                return

            revision, snapshot = self._source.sync_snapshot()
            self._cancel_reset()
            self._set_status(SyncStatus.SYNCING)
            try:
                await self._gateway.sync_workspace(self._account, snapshot.tasks, snapshot.team)
            except SyncError as e:
                self.last_error = e
                logger.warning(
                    "Sync failed account=%s revision=%s transient=%s: %s",
                    self._account.id,
                    revision,
                    e.transient,
                    e,
                )
                self._set_status(SyncStatus.ERROR)
                self._schedule_reset(SyncStatus.ERROR)
                return

            self.writes += 1
            self.last_error = None
            self._source.mark_synced(revision)
            logger.info(
                "Synced account=%s revision=%s tasks=%d",
                self._account.id,
                revision,
                len(snapshot.tasks),
            )
            self._set_status(SyncStatus.SYNCED)
            self._schedule_reset(SyncStatus.SYNCED)

    def _cancel_reset(self) -> None:
        if self._reset_task is not None:
            self._reset_task.cancel()
            self._reset_task = None

    def _schedule_reset(self, shown: SyncStatus) -> None:
        self._cancel_reset()
        self._reset_task = asyncio.get_running_loop().create_task(self._reset_after(shown))

    async def _reset_after(self, shown: SyncStatus) -> None:
        await self._sleep(self._display_s)
        if self.status == shown:
            self._set_status(SyncStatus.IDLE)

    async def flush(self) -> None:
        """Skip the quiescence window: write now if there is anything to write."""
        if self._account.is_ephemeral:
            return
        self._timer.cancel()
        await self._timer.wait_idle()
        await self._sync_now()

    async def aclose(self) -> None:
        self._timer.cancel()
        await self._timer.wait_idle()
        self._cancel_reset()
