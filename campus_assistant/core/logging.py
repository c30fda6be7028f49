"""Process-wide logging configuration."""

import logging
import os
from logging.handlers import RotatingFileHandler

from campus_assistant.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """Configure the package logger to write to the console and, optionally, a rotating file.

    Safe to call more than once: handlers are replaced rather than stacked, so
    repeated application factories (tests, reloaders) do not duplicate output.
    """
    logger = logging.getLogger("campus_assistant")
    logger.setLevel(level or settings.LOG_LEVEL)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or settings.LOG_FILE
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
