"""Logging setup for the ui-compare CLI.

Library modules only call logging.getLogger('ui_compare.<area>'); handlers
are attached here, once, by whoever owns the process.
"""

from __future__ import annotations

import logging
from pathlib import Path

CONSOLE_FORMAT = '%(asctime)s [%(name)s] %(message)s'
FILE_FORMAT = '%(asctime)s [%(name)s] [%(levelname)s] %(message)s'

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str = 'ui_compare', verbose: bool = False, log_file: str | Path | None = None) -> logging.Logger:
    """Attach a stderr console handler (and optionally a file handler) to `name`.

    Calling it again for the same logger only adjusts the level.

    Args:
        name: Logger name, normally the package root.
        verbose: DEBUG instead of INFO.
        log_file: Also write to this file.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name in _configured_loggers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    logger.propagate = False

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(sh)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding='utf-8')
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(fh)

    _configured_loggers.add(name)
    return logger
