# src/worksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engine and gateway depend on Protocols instead of concrete implementations.
This keeps storage/LLM providers swappable and makes testing easier.
"""

from typing import Any, Awaitable, Callable, Iterable, Protocol

from ..workspace.models import Account, Workspace

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

Sleep = Callable[[float], Awaitable[None]]
# asyncio.sleep-compatible; tests inject a virtual clock.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class WorkspaceRepo(Protocol):
    """
    Durable mapping account id -> Workspace.

    delete_task is optional: the gateway checks for it and falls back to the
    next full write when a store does not provide it.
    """

    def read(self, account_id: str) -> Workspace: ...
    def write(self, account_id: str, workspace: Workspace) -> None: ...


class AccountRepo(Protocol):
    def create_account(self, account: Account, secret_hash: str, workspace: Workspace) -> None: ...
    def find_account(self, contact: str) -> tuple[Account, str] | None: ...
    def get_account(self, account_id: str) -> Account | None: ...
    def mark_verified(self, contact: str) -> bool: ...


class SnapshotRepo(Protocol):
    def export_snapshot(self) -> str: ...
    def import_snapshot(self, blob: str) -> None: ...


class SyncSource(Protocol):
    """What the scheduler needs from the engine."""

    @property
    def dirty(self) -> bool: ...

    def sync_snapshot(self) -> tuple[int, Workspace]: ...
    def mark_synced(self, revision: int) -> None: ...


StatusListener = Callable[[Any], None]
