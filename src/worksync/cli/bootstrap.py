# src/worksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/gateway/accounts/LLM).
"""

from __future__ import annotations

import logging

from ..accounts.service import AccountService
from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenAICompatibleClient
from ..llm.offline import OfflineLLMClient
from ..workspace.gateway import SyncGateway
from ..workspace.store import SQLiteWorkspaceStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = SQLiteWorkspaceStore(settings.db_path, default_team=settings.default_team)

    llm_client: LLMClient
    try:
        llm_client = OpenAICompatibleClient(settings)
    except RuntimeError as e:
        logger.info("Summaries run offline: %s", e)
        llm_client = OfflineLLMClient()

    gateway = SyncGateway(
        store,
        latency_seconds=settings.gateway_latency_seconds,
        failure_rate=settings.gateway_failure_rate,
        default_team=settings.default_team,
    )
    accounts = AccountService(
        store,
        default_team=settings.default_team,
        require_verification=settings.require_verification,
        latency_seconds=settings.auth_latency_seconds,
        session_file=settings.session_path,
    )

    return AppState(
        settings=settings,
        store=store,
        gateway=gateway,
        accounts=accounts,
        llm=llm_client,
    )
