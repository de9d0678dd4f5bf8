# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

from worksync.workspace.engine import WorkspaceEngine
from worksync.workspace.gateway import SyncGateway
from worksync.workspace.models import Account, Workspace, default_workspace
from worksync.workspace.store import SQLiteWorkspaceStore

from .fakes import FakeClock, RecordingStore

TODAY = date(2026, 2, 10)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the engine and composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="worksync-test",
        data_dir=tmp_path,
        db_path=tmp_path / "worksync.sqlite3",
        session_path=tmp_path / "session.json",
        debounce_seconds=1.5,
        status_display_seconds=3.0,
        gateway_latency_seconds=0.0,
        gateway_failure_rate=0.0,
        auth_latency_seconds=0.0,
        completion_policy="rehome",
        default_team=["Self"],
        require_verification=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> RecordingStore:
    return RecordingStore(clock)


@pytest.fixture()
def sqlite_store(tmp_path: Path) -> SQLiteWorkspaceStore:
    return SQLiteWorkspaceStore(tmp_path / "store.sqlite3")


@pytest.fixture()
def gateway(store: RecordingStore, clock: FakeClock) -> SyncGateway:
    return SyncGateway(store, sleep=clock.sleep)


@pytest.fixture()
def account() -> Account:
    return Account(id="acc-1", display_name="Eve", contact="e@x.com")


@pytest.fixture()
def guest() -> Account:
    return Account(id="guest", display_name="Guest User", contact="", is_ephemeral=True)


@pytest.fixture()
def make_engine(gateway: SyncGateway, clock: FakeClock, account: Account):
    """
    Build an engine on virtual time.

    Engines must be created inside a running event loop test (mutations arm timers).
    """

    def _make(
        acct: Account | None = None,
        workspace: Workspace | None = None,
        **kwargs,
    ) -> WorkspaceEngine:
        kwargs.setdefault("clock", clock.time)
        kwargs.setdefault("sleep", clock.sleep)
        kwargs.setdefault("today", lambda: TODAY)
        return WorkspaceEngine(
            acct or account,
            workspace if workspace is not None else default_workspace(),
            gateway,
            **kwargs,
        )

    return _make
