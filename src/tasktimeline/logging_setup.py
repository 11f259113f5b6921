"""Logging configuration for the CLI entry points."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are only interesting when something breaks.
_QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "uvicorn.access")


def setup_logging(
    level: str | int = logging.INFO,
    *,
    log_file: Path | None = None,
    console: Console | None = None,
) -> None:
    """Install a Rich console handler (and optionally a file handler) on the root logger.

    Call this once, before the first log line.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    ch = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="%H:%M:%S",
    )
    ch.setLevel(level)
    root.addHandler(ch)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(fh)
        root.setLevel(min(level, logging.DEBUG))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
