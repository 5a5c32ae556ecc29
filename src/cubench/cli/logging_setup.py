"""cubench logging infrastructure.

Sets up logging for the ``cubench`` logger hierarchy with a Rich console
handler on *stderr* and an optional file handler with timestamps.

The reference engine logs every account it funds. That chatter is held at
WARNING unless DEBUG output was asked for, so an INFO run shows only the
per-subject summary lines.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cubench"

#: Loggers below :data:`LOGGER_NAME` that only speak up at DEBUG.
CHATTY_LOGGERS = ("cubench.engine",)

FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _console_handler(level: int, console: Console | None) -> RichHandler:
    # Subject names and base58 ids are printed verbatim, never as markup.
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_path=level <= logging.DEBUG,
        markup=False,
        rich_tracebacks=level <= logging.DEBUG,
    )
    handler.setLevel(level)
    return handler


def _file_handler(level: int, log_file: Path) -> logging.FileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(log_file), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path | str] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``cubench`` logger.

    Parameters
    ----------
    level:
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``). Unknown names
        fall back to INFO.
    log_file:
        Optional path to a log file. A :class:`~logging.FileHandler` with
        timestamps is added when provided.
    console:
        Optional Rich console for the console handler.

    Returns
    -------
    logging.Logger
        The configured ``cubench`` logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Repeated calls (one per CLI invocation in tests) must not stack handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    logger.addHandler(_console_handler(numeric_level, console))
    if log_file is not None:
        logger.addHandler(_file_handler(numeric_level, Path(log_file)))

    chatty_level = logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)

    return logger
