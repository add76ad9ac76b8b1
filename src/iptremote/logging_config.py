"""
Logging configuration for iptremote.

Console output goes to stderr so ``--json`` output on stdout stays
parseable. An optional rotating log file records every remote command
at DEBUG level regardless of the console level.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any

LOGGER_NAME = "iptremote"
DEFAULT_LOG_FILE = Path.home() / ".iptremote" / "logs" / "iptremote.log"

LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(funcName)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "WARNING", log_file: str | Path | None = None) -> logging.Logger:
    """
    Set up the iptremote logger.

    Args:
        level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Rotating log file; parent directories are created

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_level = getattr(logging, level.upper())
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)

    logger.propagate = False
    return logger


def configure_logging(debug: bool = False, log_file: str | Path | None = None) -> logging.Logger:
    """Console at WARNING (DEBUG with ``debug``), plus an optional log file."""
    return setup_logging(level="DEBUG" if debug else "WARNING", log_file=log_file)


class ErrorTracker:
    """Count failures that are logged instead of raised, by type."""

    def __init__(self):
        self.errors: dict[str, int] = {}
        self.logger = logging.getLogger(__name__)

    def log_error(
        self,
        error_type: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.errors[error_type] = self.errors.get(error_type, 0) + 1

        log_msg = f"{error_type}: {message}"
        if context:
            log_msg += f" | Context: {context}"
        self.logger.error(log_msg)

    def get_error_counts(self) -> dict[str, int]:
        return self.errors.copy()

    def reset_counts(self) -> None:
        self.errors.clear()


# Global error tracker instance
_error_tracker = ErrorTracker()


def track_error(error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
    """Track an error globally."""
    _error_tracker.log_error(error_type, message, context)


def get_error_stats() -> dict[str, int]:
    """Get global error counts by type."""
    return _error_tracker.get_error_counts()


def reset_error_stats() -> None:
    """Reset global error counts; the CLI does this before each operation."""
    _error_tracker.reset_counts()
