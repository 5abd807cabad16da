# utils/logging.py

"""Logging helpers for the FORGE system."""

from __future__ import annotations

import logging
import logging.handlers
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from rich.logging import RichHandler

from config import settings

logger = structlog.get_logger(__name__)


__all__ = ["RunContextFilter", "bind_run_intent", "run_log_context", "setup_logging_forge"]

RUN_CONTEXT_KEYS = ("run_id", "intent")
QUIET_LOGGERS = ("httpx", "httpcore")


class RunContextFilter(logging.Filter):
    """Expose the bound run context as ``record.forge_run`` for formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = structlog.contextvars.get_contextvars()
        parts = [
            f"{key}={context[key]}"
            for key in RUN_CONTEXT_KEYS
            if context.get(key) is not None
        ]
        record.forge_run = " ".join(parts) or "-"
        return True


@contextmanager
def run_log_context(run_id: str | None = None) -> Iterator[str]:
    """Tag every log line emitted inside the block with one run id.

    The intent slot is cleared on exit together with the id, so a later run
    never inherits a stale intent.
    """
    run_id = run_id or uuid.uuid4().hex[:8]
    with structlog.contextvars.bound_contextvars(run_id=run_id, intent=None):
        yield run_id


def bind_run_intent(intent: str) -> None:
    structlog.contextvars.bind_contextvars(intent=intent)


def setup_logging_forge(level: str | None = None) -> None:
    """Configure structlog and standard logging for FORGE."""
    log_level = (level or settings.LOG_LEVEL_STR).upper()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    run_filter = RunContextFilter()

    if settings.LOG_FILE:
        try:
            file_path = (
                settings.LOG_FILE
                if os.path.isabs(settings.LOG_FILE)
                else os.path.join(settings.LOG_DIR, settings.LOG_FILE)
            )
            log_dir = os.path.dirname(file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                file_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                mode="a",
                encoding="utf-8",
            )
            file_formatter = logging.Formatter(
                settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT
            )
            file_handler.setFormatter(file_formatter)
            file_handler.addFilter(run_filter)
            root_logger.addHandler(file_handler)
        except OSError as e:  # pragma: no cover - path issues
            logger.error("Error setting up file logger: %s", e)

    if settings.ENABLE_RICH_PROGRESS:
        console_handler = RichHandler(
            level=log_level,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
            show_time=True,
            show_level=True,
        )
        console_handler.addFilter(run_filter)
        root_logger.addHandler(console_handler)
    else:
        stream_handler = logging.StreamHandler()
        stream_formatter = logging.Formatter(
            settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT
        )
        stream_handler.setFormatter(stream_formatter)
        stream_handler.addFilter(run_filter)
        root_logger.addHandler(stream_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    log = structlog.get_logger()
    log.info(
        "FORGE Logging setup complete.",
        log_level=logging.getLevelName(root_logger.level),
    )
