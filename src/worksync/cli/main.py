# src/worksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console loop on an asyncio
event loop (the sync scheduler's timers live on the same loop).
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import StorageUnavailable
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except StorageUnavailable:
        logger.exception("Cannot open the workspace database.")
        raise SystemExit(1)

    try:
        asyncio.run(run_console_loop(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        state.store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
