"""
Structured logging for the video generation service.

Every record carries the job id of the run it belongs to: the queue worker
binds it with ``bind_job`` and structlog's contextvars merge it into each
event. Output goes to stdout plus two rotating files in ``logs_dir``, one
with everything at INFO and above and one with errors only.
"""

import sys
import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Iterator, Optional
import structlog
from structlog.stdlib import LoggerFactory

from .config import Settings, get_settings

# Chatty third-party loggers capped at WARNING
QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "multipart", "uvicorn.access")

# Marks handlers installed here so a second setup call replaces them
_HANDLER_TAG = "_course_video_pipeline"


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and the root logger. Safe to call more than once."""
    settings = settings or get_settings()
    settings.logs_dir.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(message)s"))
    _install(root_logger, console)

    for file_name, level in (
        (settings.log_file_name, logging.INFO),
        (settings.error_log_file_name, logging.ERROR),
    ):
        handler = RotatingFileHandler(
            settings.logs_dir / file_name,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        _install(root_logger, handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _install(root_logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_TAG, True)
    root_logger.addHandler(handler)


@contextmanager
def bind_job(job_id: str) -> Iterator[None]:
    """Attach ``job_id`` to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(job_id=job_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Mixin class to add logging capabilities to other classes."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        """Get a logger instance for this class."""
        return get_logger(self.__class__.__name__)
