"""
Centralized logging configuration for the application.

Log lines carry the id of the workflow run that produced them, so output
from runs executing concurrently in one process can be told apart.

Usage:
    from scrum_agent.core.logging import get_logger, bind_run_id

    logger = get_logger(__name__)
    with bind_run_id(run_id):
        logger.info("Hello world")
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_current_run_id: ContextVar[str] = ContextVar("current_run_id", default="-")


class RunIdFilter(logging.Filter):
    """Attach the active run id to every record as ``record.run_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run_id.get()
        return True


@contextmanager
def bind_run_id(run_id: str) -> Iterator[None]:
    """Scope log records emitted in this task (and its children) to a run."""
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a standard format.

    Should be called once at application startup (lifespan).

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_format = (
        "%(asctime)s | %(levelname)-8s | run=%(run_id)s | "
        "%(name)s:%(lineno)d | %(message)s"
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RunIdFilter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Reduce noise from third-party libraries
    for noisy in ("httpx", "httpcore", "openai", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return logging.getLogger(name)
