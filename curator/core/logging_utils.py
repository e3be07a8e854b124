"""Structured logging for the curation library.

Modules log through ``logging.getLogger(__name__)`` with snake_case event
names and ``extra={...}`` fields. Embedding applications call
``setup_json_logging`` once to render those records as JSON lines, either
through the stdlib formatter below or through loguru sinks.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import socket
import sys
import uuid
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from typing import Any

from loguru import logger as loguru_logger

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Fields lifted to the top level of a JSON line so dispatches are easy to follow.
PROMOTED_FIELDS = ("correlation_id", "container_id")

_ROTATE_BYTES = 50 * 1024 * 1024


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _to_json_safe(value: Any) -> Any:
    if isinstance(value, (set, frozenset, tuple)):
        return str(sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value))
    if isinstance(value, dt.datetime):
        return value.isoformat()
    return f"<{type(value).__name__}>" if hasattr(value, "__dict__") else str(value)


class EnhancedJsonFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as one JSON line."""

    def __init__(self, include_location: bool = True) -> None:
        super().__init__()
        self.include_location = include_location
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        extra = _record_extra(record)
        payload: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=dt.UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }
        payload.update({key: extra.pop(key) for key in PROMOTED_FIELDS if key in extra})

        if self.include_location:
            payload["location"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        if extra:
            payload["extra"] = extra
        return json.dumps(payload, ensure_ascii=False, default=_to_json_safe, separators=(",", ":"))


class _InterceptHandler(logging.Handler):
    """Hand stdlib records to loguru, keeping ``extra`` fields as bound context."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: int | str = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        loguru_logger.bind(logger_name=record.name, **_record_extra(record)).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    include_location: bool = True,
    use_loguru: bool = False,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Route the root logger to JSON lines on stdout (and ``log_file``).

    Args:
        level: Minimum level name, e.g. ``"DEBUG"``.
        include_location: Add ``module:function:line`` to stdlib JSON lines.
        use_loguru: Serialize through loguru sinks instead of the stdlib
            formatter.
        log_file: Optional file that receives the same lines.
        max_file_size: Rotation size of the loguru file sink.
        retention: Retention period of the loguru file sink.
    """
    level = level.upper()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level, logging.INFO))
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stdout, level=level, serialize=True, backtrace=False)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level,
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(_InterceptHandler())
    else:
        formatter = EnhancedJsonFormatter(include_location=include_location)
        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if log_file:
            handlers.append(RotatingFileHandler(log_file, maxBytes=_ROTATE_BYTES, backupCount=5))
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)

    logging.getLogger(__name__).info(
        "json_logging_initialized",
        extra={"backend": "loguru" if use_loguru else "stdlib", "log_file": log_file},
    )


def generate_correlation_id() -> str:
    """Short random id that ties the log lines of one dispatch together."""
    return uuid.uuid4().hex[:12]


def format_ids_for_log(ids: Iterable[str], limit: int = 20) -> str:
    """Join ids for a log field, truncating long lists."""
    ids = list(ids)
    shown = ",".join(ids[:limit])
    return shown if len(ids) <= limit else f"{shown},... (+{len(ids) - limit})"


__all__ = [
    "PROMOTED_FIELDS",
    "EnhancedJsonFormatter",
    "format_ids_for_log",
    "generate_correlation_id",
    "setup_json_logging",
]
