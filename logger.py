"""
logger.py
---------
Structured, application-wide logging configuration.

Design Decisions:
    * A single root logger ("schema_migrator") is configured once at import
      time; core modules, the CLI and the API all log beneath it.
    * All modules obtain a child logger via ``get_logger(__name__)``.
    * Optional file handler appends structured lines to a persistent log
      file (path set via LOG_FILE env variable) and always records DEBUG,
      so platform adaptations are traceable even when the console is quiet.
    * Uses %(levelname)-8s for aligned console output and ISO-8601
      timestamps for easy grep/sort in log files.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, get_log_level

_ROOT_LOGGER_NAME = "schema_migrator"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_console_handler: logging.Handler | None = None


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
    return handler


def _configure_root_logger() -> None:
    """One-time setup of the "schema_migrator" logger and its handlers."""
    global _console_handler
    if _console_handler is not None:
        return

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)

    _console_handler = _handler(logging.StreamHandler(sys.stderr), get_log_level(), _CONSOLE_FORMAT)
    root.addHandler(_console_handler)

    if CONFIG.migration.log_file:
        log_path = Path(CONFIG.migration.log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            root.addHandler(
                _handler(logging.FileHandler(log_path, encoding="utf-8"), logging.DEBUG, _FILE_FORMAT)
            )
        except OSError as exc:
            root.warning("Could not create log file '%s': %s", log_path, exc)


_configure_root_logger()


def set_level(level: int) -> None:
    """Change the console verbosity (the CLI's ``--verbose`` flag)."""
    if _console_handler is not None:
        _console_handler.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Return a child logger scoped to the given name.

    Args:
        name: Typically ``__name__`` of the calling module.

    Returns:
        A :class:`logging.Logger` instance under the "schema_migrator" hierarchy.

    Example::

        log = get_logger(__name__)
        log.info("Connected to %s", connection_name)
        log.warning("Table mapping ignored: %s", reason)
        log.error("Statement failed: %s", error)
    """
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
