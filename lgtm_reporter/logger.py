"""Logging setup for the reporter."""

import logging
import re
import sys
from typing import TextIO

LOGGER_NAME = "lgtm_reporter"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"lgtm_v1_[A-Za-z0-9_-]+"), "lgtm_v1_[REDACTED]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9._-]+"), "Bearer [REDACTED]"),
)


def redact(message: str) -> str:
    """Mask API tokens in a log message."""
    for pattern, replacement in REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


class RedactingFormatter(logging.Formatter):
    """Keep API tokens out of CI logs.

    Redacts the formatted text only, so records seen by other handlers are
    left untouched.
    """

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def configure_logging(
    *, debug: bool = False, stream: TextIO | None = None
) -> logging.Logger:
    """Attach a redacting stderr handler to the package logger, once.

    The handler also covers records propagated from the package's module
    loggers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(RedactingFormatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
