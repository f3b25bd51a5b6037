"""
Structured logging for the booking backend.

Each record carries the request correlation ID and any fields bound with
``log_context`` (sweep job name, payment reference). JSON lines are the
default output; ``LOG_JSON=false`` switches to plain text for local runs.
"""
import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from marketplace.lib.settings import settings

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_bound_fields: ContextVar[Dict[str, Any]] = ContextVar("log_fields", default={})

QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler", "sqlalchemy.engine")


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = dict(_bound_fields.get())
    fields.update(getattr(record, "extra_fields", None) or {})
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, bound and per-call fields merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id
        entry.update(_record_fields(record))
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _record_fields(record)
        correlation_id = correlation_id_var.get()
        if correlation_id:
            fields = {"correlation_id": correlation_id, **fields}
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install a single stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: Optional[str]) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind fields to every record logged inside the block. Nested blocks merge."""
    token = _bound_fields.set({**_bound_fields.get(), **fields})
    try:
        yield
    finally:
        _bound_fields.reset(token)


def log_with_context(logger: logging.Logger, level: str, message: str, **extra_fields: Any) -> None:
    logger.log(logging.getLevelName(level.upper()), message, extra={"extra_fields": extra_fields})


configure_logging(
    level="DEBUG" if settings.debug else settings.log_level,
    json_format=settings.log_json,
)
