"""
Loguru configuration for Undangan.

Records from standard library loggers (uvicorn, sqlalchemy) are routed into
loguru, so the whole process writes to the same sinks.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

from ..settings import Settings, settings

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
LOG_FILE_NAME = "undangan.log"
STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "sqlalchemy.engine")


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real call site
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def log_file_path(config: Settings) -> Path:
    """Where the rotating log file lives for ``config``."""
    return config.get_log_dir() / LOG_FILE_NAME


def configure_logging(config: Settings = settings) -> None:
    """Rebuild the loguru sinks from ``config``.

    Always logs to stderr; with ``log_to_file`` also to a rotating,
    zip-compressed file under the log directory.
    """
    log_format = config.log_format or DEFAULT_FORMAT

    logger.remove()
    logger.add(
        sys.stderr,
        level=config.log_level,
        format=log_format,
        colorize=True,
        backtrace=True,
        diagnose=config.debug,
    )

    if config.log_to_file:
        path = log_file_path(config)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            level=config.log_level,
            format=log_format,
            rotation=config.log_rotation,
            retention=config.log_retention,
            compression="zip",
            diagnose=config.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in STDLIB_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.propagate = False


configure_logging()

__all__ = ["InterceptHandler", "configure_logging", "log_file_path", "logger"]
