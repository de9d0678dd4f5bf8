# src/worksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import resume_session
from ..core.state import AppState
from ..errors import WorksyncError
from ..workspace.scheduler import SyncStatus

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _announce_sync(status: SyncStatus) -> None:
    # Only the transitions a user acts on; idle/syncing would be noise at the prompt.
    if status is SyncStatus.ERROR:
        _print_ts("[SYNC] Cloud sync failed; your changes are kept and will retry on the next edit.")
    elif status is SyncStatus.SYNCED:
        logger.debug("Sync confirmed.")


async def run_console_loop(state: AppState) -> None:
    """
    Read-eval loop on the event loop.

    input() runs in a worker thread so debounce timers keep firing while the
    user is typing.
    """
    logger.info("Console started (db=%s).", getattr(state.settings, "db_path", "?"))
    _print_ts("[CONSOLE] Use /help for commands, /guest or /login to begin, /exit to quit.\n")

    try:
        welcome = await resume_session(state)
    except WorksyncError as e:
        logger.warning("Could not restore the previous session: %s", e)
        _print_ts("[CONSOLE] Previous session could not be restored; please log in.\n")
    else:
        if welcome:
            _print_ts(f"[CONSOLE] {welcome}\n")

    watched_engine = None

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Try /help.")
            continue

        try:
            reply = await command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command failed: %s", user_input)
            _print_ts("[ERROR] Command failed; see the log for details.")
            continue

        if state.engine is not None and state.engine is not watched_engine:
            state.engine.add_status_listener(_announce_sync)
            watched_engine = state.engine

        if reply:
            print(reply, flush=True)

    await state.end_session()
