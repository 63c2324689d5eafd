"""Logging setup for the API process and the notification workers.

Everything logs under the `timesheets` logger tree; call `setup_logger` once
per process. Transition outcomes, delegation changes and notification
delivery are logged at INFO, rejected requests at INFO, broker failures at
ERROR.
"""

import logging
import logging.handlers
import os
from typing import Optional

from timesheets.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(process)d] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "celery.worker.strategy", "kombu", "amqp")


def setup_logger(
    name: str = "timesheets",
    settings: Optional[Settings] = None,
    *,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the package logger from settings.

    Uses `log_level`, `log_dir` and `file_logging`. File output goes to
    `<log_dir>/<name>.log` with size-based rotation. Calling it again only
    updates the level.

    Raises:
        ValueError: Unknown log level in settings
    """
    settings = settings or get_settings()
    logger = logging.getLogger(name)

    level = settings.log_level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"Invalid log level: {settings.log_level}")
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.file_logging:
        os.makedirs(settings.log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(settings.log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not settings.debug:
        for noisy in QUIET_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
