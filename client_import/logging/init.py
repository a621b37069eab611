from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the import CLI.

Modules log through logging.getLogger(__name__). Everything under the
`client_import` namespace reaches a single stdout handler installed by
setup_logging(), so log lines and the SUMMARY line share one stream.

Line format is '<LABEL> <message>'. DEBUG lines also name the emitting module
relative to the package ('DEBUG [services.executor] ...') so batch traces and
store traces can be told apart.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "SUMMARY_PREFIX",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "client_import"

# Between INFO=20 and WARNING=30: shown at the default level, never filtered as a warning
SUMMARY_LEVEL = 25
SUMMARY_PREFIX = "SUMMARY "

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_handler: logging.Handler | None = None


def _origin(record: logging.LogRecord) -> str:
    if record.name == LOGGER_NAME:
        return "app"
    return record.name.removeprefix(LOGGER_NAME + ".")


class LabeledFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if record.levelno <= logging.DEBUG:
            return f"{label} [{_origin(record)}] {message}"
        return f"{label} {message}"


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Install the package handler on first call; later calls only change the level.

    Args:
        level: threshold for both the package logger and its handler
        stream: output stream, stdout when omitted (only honoured on first call)

    Returns:
        The `client_import` logger
    """
    global _handler

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(LOGGER_NAME)
    if _handler is None:
        _handler = logging.StreamHandler(stream or sys.stdout)
        _handler.setFormatter(LabeledFormatter())
        logger.addHandler(_handler)
        logger.propagate = False

    _handler.setLevel(level)
    logger.setLevel(level)
    return logger


def get_logger() -> logging.Logger:
    if _handler is None:
        return setup_logging()
    return logging.getLogger(LOGGER_NAME)


def log_summary(line: str) -> None:
    """Emit a rendered summary line; its 'SUMMARY ' prefix becomes the level label."""
    get_logger().log(SUMMARY_LEVEL, line.removeprefix(SUMMARY_PREFIX))


def reset_logging() -> None:
    """Detach the package handler so the next setup_logging() binds a fresh stream."""
    global _handler
    if _handler is not None:
        logging.getLogger(LOGGER_NAME).removeHandler(_handler)
        _handler.close()
        _handler = None
