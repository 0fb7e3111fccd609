"""Centralised logging configuration built on loguru.

Two text sinks (stderr and a rotating file) render the bound structured fields
after each message. Merge actions additionally go to a JSON-lines audit file so
every destructive step of a run can be replayed from disk.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict

from loguru import logger

from ..config.settings import Settings, get_settings

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[run_id]}</cyan> | "
    "<magenta>{extra[step]}</magenta> | "
    "{message}"
)

# Bound on every record, already shown in their own columns.
_COLUMN_FIELDS = frozenset({"run_id", "step", "module", "fields"})

logger.configure(extra={"run_id": "-", "step": "-"})


def format_record(record: Dict[str, Any]) -> str:
    """Loguru format callable appending ``key=value`` pairs for bound fields."""

    extra = record["extra"]
    fields = " ".join(f"{key}={value}" for key, value in extra.items() if key not in _COLUMN_FIELDS)
    extra["fields"] = fields
    template = _LOG_FORMAT + (" | <dim>{extra[fields]}</dim>" if fields else "")
    return template + "\n{exception}"


def _is_merge_action(record: Dict[str, Any]) -> bool:
    return "action" in record["extra"]


def configure_logging(settings: Settings | None = None, level: str = "INFO", *, enqueue: bool = True) -> None:
    """Initialise loguru sinks according to the active settings."""

    cfg = settings or get_settings()
    log_path = cfg.log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        enqueue=enqueue,
        backtrace=False,
        diagnose=False,
        format=format_record,
    )
    logger.add(
        log_path,
        rotation="10 MB",
        retention="14 days",
        enqueue=enqueue,
        format=format_record,
        level=level,
    )
    logger.add(
        cfg.audit_log_file,
        level="INFO",
        enqueue=enqueue,
        serialize=True,
        filter=_is_merge_action,
    )
    logger.configure(extra={"run_id": "-", "step": "-"})


def get_logger(**context: Any):
    """Return a contextualised logger instance."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any):
    """Context manager that temporarily binds structured context fields."""

    with logger.contextualize(**context):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger):
    start = perf_counter()
    try:
        yield
    finally:
        logger_.info("Step timing", step=step, seconds=round(perf_counter() - start, 3))


__all__ = ["configure_logging", "format_record", "get_logger", "logging_context", "log_timing"]
