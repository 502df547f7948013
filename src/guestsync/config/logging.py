"""Shared logging helpers for guestsync."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


def configure_logging(
    *,
    level: int | str | None = None,
    log_file: str | Path | None = None,
    force: bool = False,
) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: the level
    defaults to ``LOG_LEVEL`` (or INFO) and a rotating file handler is attached when
    ``log_file`` or ``LOG_FILE`` is set. Pass ``force=True`` to reconfigure during
    tests or specialised entry points.
    """

    resolved_level = level if level is not None else os.getenv("LOG_LEVEL", "INFO").upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    target = log_file or os.getenv("LOG_FILE")
    if target:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(path, maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS)
        )

    logging.basicConfig(
        level=resolved_level,
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=force,
    )
