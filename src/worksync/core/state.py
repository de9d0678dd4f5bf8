# src/worksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..accounts.service import AccountService
from ..workspace.engine import WorkspaceEngine
from ..workspace.gateway import SyncGateway
from .ports import LLMClient


@dataclass
class AppState:
    """Everything the console needs; built once by cli.bootstrap."""

    settings: Any
    store: Any
    gateway: SyncGateway
    accounts: AccountService
    llm: LLMClient

    engine: WorkspaceEngine | None = None
    view_date: str = field(default_factory=lambda: date.today().isoformat())

    async def end_session(self) -> None:
        """Flush and drop the current engine, if any."""
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.close()
