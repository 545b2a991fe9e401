# listing_search/logging_setup.py

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "listing_search"

_FORMATTER = logging.Formatter(fmt="%(asctime)s %(levelname)s %(message)s", datefmt="(%Y-%m-%d %H:%M:%S)")


def configure_logging(level: str | int = "WARNING", log_file: str | None = None) -> logging.Logger:
    """
    Attach a stderr handler and, optionally, a rotating file handler to the package logger.
    Safe to call repeatedly: handlers installed by a previous call are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level if isinstance(level, int) else logging.getLevelName(str(level).upper()))

    for handler in list(logger.handlers):
        if getattr(handler, "_listing_search", False):
            logger.removeHandler(handler)
            handler.close()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(_FORMATTER)
    stream._listing_search = True  # type: ignore[attr-defined]
    logger.addHandler(stream)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        except OSError as e:
            # don't fail just because the log file is not writable
            logger.warning("log file %s unavailable: %s", log_file, e)
        else:
            handler.setFormatter(_FORMATTER)
            handler._listing_search = True  # type: ignore[attr-defined]
            logger.addHandler(handler)

    return logger
