# src/worksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "worksync.log"

# Loggers that only reach the console at or above the given level.
# Everything still lands in the log file.
_CONSOLE_FLOORS: dict[str, int] = {
    "worksync.workspace.gateway": logging.WARNING,
    "worksync.workspace.scheduler": logging.WARNING,
    "worksync.workspace.store": logging.WARNING,
    "py.warnings": logging.ERROR,
}

_THIRD_PARTY = ("httpx", "httpcore", "openai")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the prompt readable while the sync engine runs in the background.

    Per-write chatter from the gateway, scheduler and store is file-only unless it is
    a warning; non-worksync loggers only show errors.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, floor in _CONSOLE_FLOORS.items():
            if record.name == prefix or record.name.startswith(prefix + "."):
                return record.levelno >= floor
        if record.name.startswith("worksync."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/worksync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install one console handler (filtered) and one file handler (everything).

    Safe to call again: previous root handlers are replaced, not stacked.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console_fmt = logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", datefmt="%H:%M:%S")
    file_fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(file_fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name in _THIRD_PARTY:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
