# src/worksync/workspace/gateway.py

"""
Sync gateway.

The only way the rest of the app talks to the persistence store:
- guests (ephemeral accounts) short-circuit to an immediate success,
- durable accounts pay a bounded latency, may hit a simulated transient failure,
  and have their writes serialized per account,
- every store failure comes back as SyncError.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable

from ..core.ports import Sleep, WorkspaceRepo
from ..errors import StorageUnavailable, SyncError
from .models import Account, Task, Workspace, default_workspace

logger = logging.getLogger(__name__)


class SyncGateway:
    def __init__(
        self,
        store: WorkspaceRepo,
        *,
        latency_seconds: float = 0.0,
        failure_rate: float = 0.0,
        default_team: list[str] | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._latency = max(0.0, float(latency_seconds))
        self._failure_rate = min(1.0, max(0.0, float(failure_rate)))
        self._default_team = list(default_team or ["Self"])
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    async def _remote_hop(self, op: str, account_id: str) -> None:
        if self._latency > 0:
            await self._sleep(self._latency)
        if self._failure_rate > 0 and self._rng.random() < self._failure_rate:
            logger.info("Simulated transient failure op=%s account=%s", op, account_id)
            raise SyncError(f"{op}: remote temporarily unavailable", transient=True)

    async def fetch_workspace(self, account: Account) -> Workspace:
        if account.is_ephemeral:
            return default_workspace(self._default_team)

        await self._remote_hop("fetch", account.id)
        try:
            ws = self._store.read(account.id)
        except StorageUnavailable as e:
            raise SyncError(f"fetch failed: {e}") from e
        logger.debug("Fetched workspace account=%s tasks=%d", account.id, len(ws.tasks))
        return ws

    async def sync_workspace(
        self, account: Account, tasks: Iterable[Task], team: Iterable[str]
    ) -> None:
        if account.is_ephemeral:
            return

        workspace = Workspace(tasks=list(tasks), team=list(team))
        async with self._lock_for(account.id):
            await self._remote_hop("sync", account.id)
            try:
                self._store.write(account.id, workspace)
            except StorageUnavailable as e:
                raise SyncError(f"sync failed: {e}") from e
        logger.debug(
            "Synced workspace account=%s tasks=%d team=%d",
            account.id,
            len(workspace.tasks),
            len(workspace.team),
        )

    async def delete_task(self, account: Account, task_id: str) -> bool:
        """
        Request a fine-grained delete.

        Returns False when the store has no such path; the next full write
        then carries the deletion.
        """
        if account.is_ephemeral:
            return True

        delete = getattr(self._store, "delete_task", None)
        if not callable(delete):
            logger.debug("Store has no delete_task; relying on next full write task=%s", task_id)
            return False

        async with self._lock_for(account.id):
            await self._remote_hop("delete", account.id)
            try:
                delete(account.id, task_id)
            except StorageUnavailable as e:
                raise SyncError(f"delete failed: {e}") from e
        return True
