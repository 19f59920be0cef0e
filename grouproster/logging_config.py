"""Logging setup for the grouproster loggers.

Handlers are attached to the "grouproster" logger rather than the root, so an
embedding chat client keeps its own logging untouched while the roster core's
`grouproster.*` loggers follow the configured level and destinations.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .config import ClientRuntimeConfig
from .util import expand_path

PACKAGE_LOGGER = "grouproster"

# Replay output goes to stdout; log lines on stderr stay short.
REPLAY_CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"


def level_from_name(value: str | int | None, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    text = str(value or "").strip().upper()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text) if text else default
    return level if isinstance(level, int) else default


def configure_logging(
    cfg: ClientRuntimeConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
    console_format: str | None = None,
) -> logging.Logger:
    """Point the grouproster loggers at the configured console and file.

    `override_file=""` disables file logging even when the config names a file.
    Calling again replaces the handlers installed by the previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    datefmt = cfg.log_datefmt or None
    handlers: list[logging.Handler] = []

    if cfg.log_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(console_format or cfg.log_format, datefmt))
        handlers.append(console)

    log_file = cfg.log_file if override_file is None else override_file
    if log_file:
        path = Path(expand_path(log_file))
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(cfg.log_format, datefmt))
        handlers.append(file_handler)

    for h in handlers:
        logger.addHandler(h)

    logger.setLevel(level_from_name(override_level or cfg.log_level))
    logger.propagate = not handlers
    return logger
