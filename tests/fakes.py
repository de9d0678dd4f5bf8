# tests/fakes.py

from __future__ import annotations

import asyncio
import heapq
from collections.abc import Iterable
from dataclasses import dataclass

from worksync.core.ports import ChatMessage
from worksync.errors import StorageUnavailable
from worksync.workspace.models import Workspace
from worksync.workspace.store import InMemoryWorkspaceStore


async def settle(rounds: int = 25) -> None:
    """Let every ready task on the loop run until things quiet down."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """
    Virtual time for the sync engine.

    Pass clock.sleep wherever an asyncio.sleep-compatible callable is accepted,
    then drive time forward with `await clock.advance(dt)`.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._waiters: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = 0

    def time(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._seq += 1
        heapq.heappush(self._waiters, (self.now + max(0.0, delay), self._seq, fut))
        await fut

    async def advance(self, delta: float) -> None:
        target = self.now + delta
        await settle()
        while self._waiters and self._waiters[0][0] <= target:
            deadline, _, fut = heapq.heappop(self._waiters)
            self.now = max(self.now, deadline)
            if not fut.done():
                fut.set_result(None)
            await settle()
        self.now = target
        await settle()


@dataclass(slots=True)
class StoreCall:
    op: str
    account_id: str
    at: float
    workspace: Workspace | None = None


class RecordingStore(InMemoryWorkspaceStore):
    """
    In-memory store that records every workspace call (with virtual time)
    and can be told to fail the next N writes or every delete.
    """

    def __init__(self, clock: FakeClock | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.clock = clock
        self.calls: list[StoreCall] = []
        self.fail_writes = 0
        self.fail_deletes = False

    def _at(self) -> float:
        return self.clock.now if self.clock is not None else 0.0

    @property
    def writes(self) -> list[StoreCall]:
        return [c for c in self.calls if c.op == "write"]

    def read(self, account_id: str) -> Workspace:
        self.calls.append(StoreCall("read", account_id, self._at()))
        return super().read(account_id)

    def write(self, account_id: str, workspace: Workspace) -> None:
        self.calls.append(StoreCall("write", account_id, self._at(), workspace.copy()))
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise StorageUnavailable("disk unavailable")
        super().write(account_id, workspace)

    def delete_task(self, account_id: str, task_id: str) -> None:
        self.calls.append(StoreCall("delete_task", account_id, self._at()))
        if self.fail_deletes:
            raise StorageUnavailable("disk unavailable")
        super().delete_task(account_id, task_id)


class WriteOnlyStore:
    """A store without the optional fine-grained delete path."""

    def __init__(self) -> None:
        self.inner = InMemoryWorkspaceStore()
        self.writes = 0

    def read(self, account_id: str) -> Workspace:
        return self.inner.read(account_id)

    def write(self, account_id: str, workspace: Workspace) -> None:
        self.writes += 1
        self.inner.write(account_id, workspace)


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    """

    def __init__(self, next_text: str = "ok") -> None:
        self.next_text = next_text
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        yield self.next_text


class BrokenLLMClient:
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        raise RuntimeError("All LLM models failed.")
        yield ""  # pragma: no cover
