"""
Centralized logging configuration.

All loggers live under the "orchestrator" namespace and share one console
handler and one rotating file handler, installed once by setup_logging().
Modules call get_logger(__name__); job-scoped code wraps its logger with
job_logger() so every line carries the job id.
"""
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from .constants import (
    LOG_LEVEL, LOG_FORMAT, LOG_FILE,
    LOG_MAX_SIZE_MB, LOG_BACKUP_COUNT
)

ROOT_LOGGER_NAME = "orchestrator"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Install console (INFO) and rotating file (DEBUG) handlers on the
    namespace logger. Calling it again returns the configured logger.

    Args:
        level: Log level name; defaults to $LOG_LEVEL or LOG_LEVEL
        log_file: Log file path; defaults to $LOG_FILE or LOG_FILE

    Returns:
        The "orchestrator" namespace logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    level_name = (level or os.getenv("LOG_LEVEL", LOG_LEVEL)).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.propagate = False
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    root.addHandler(console)

    log_path = Path(log_file or os.getenv("LOG_FILE", LOG_FILE))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_SIZE_MB * 1024 * 1024,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for a module, under the shared namespace.

    Usage:
        from config.logging_config import get_logger
        logger = get_logger(__name__)
    """
    setup_logging()
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with [job_id]"""

    def process(self, msg, kwargs):
        return f"[{self.extra['job_id']}] {msg}", kwargs


def job_logger(logger: logging.Logger, job_id: str) -> JobLogAdapter:
    return JobLogAdapter(logger, {"job_id": job_id})


logger = get_logger()
