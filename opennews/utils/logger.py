"""
Logging setup for the whole project.
- console + file output
- daily log file rotation
- per-module logger helper
"""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from opennews.utils.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "opennews.log"

_initialized: bool = False


def _ensure_log_dir(log_dir: Path) -> Path:
    """Create the log directory if it does not exist."""
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_logging() -> None:
    """Attach a console handler and a file handler to the root logger.

    Runs only once; later calls are ignored.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # File handler (rotated at midnight, 30 days kept). Read-only
    # filesystems (serverless runtimes) fall back to console only.
    if settings.log_dir:
        _add_file_handler(root_logger, Path(settings.log_dir), level)

    for noisy_logger in (
        "httpx", "httpcore", "urllib3", "asyncio", "aiohttp", "sqlalchemy.engine",
    ):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def _add_file_handler(root_logger: logging.Logger, log_dir: Path, level: int) -> None:
    try:
        file_handler = TimedRotatingFileHandler(
            filename=_ensure_log_dir(log_dir) / LOG_FILE_NAME,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
    except OSError as exc:
        root_logger.warning("File logging disabled: %s", exc)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with logging configured.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        A configured ``logging.Logger``.
    """
    setup_logging()
    return logging.getLogger(name)
