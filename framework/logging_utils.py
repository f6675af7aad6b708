"""Logging setup shared by the API server and the simulation CLI."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

ROOT_LOGGER_NAME = "tentaizu"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(level: str | int = "INFO", log_dir: str | Path | None = None) -> logging.Logger:
    """Attach console (and optional dated file) handlers to the package loggers.

    Engine modules log under their own module names; the handlers are attached
    to the root logger so `framework.*`, `tentaizu.*` and `server.*` all share
    them. Calling this twice replaces the handlers instead of duplicating them.
    """
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    root.setLevel(resolved)
    for handler in list(root.handlers):
        if getattr(handler, "_tentaizu_handler", False):
            root.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console_handler._tentaizu_handler = True  # type: ignore[attr-defined]
    root.addHandler(console_handler)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"tentaizu_{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(resolved)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        file_handler._tentaizu_handler = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    return logging.getLogger(ROOT_LOGGER_NAME)
