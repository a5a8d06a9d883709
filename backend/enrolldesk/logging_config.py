"""
Structured JSON logging configuration.

Each service logs through a channel logger (`enrolldesk.<channel>`). A filter
on the output handler stamps every record with its channel and the ID of the
HTTP request being served, and the formatter writes the record as one JSON
line:

    {"timestamp": ..., "level": "INFO", "channel": "import",
     "message": "...", "context": {"request_id": ..., "user_id": ...},
     "extra": {"duration_ms": ...}}
"""

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, TextIO

LOGGER_PREFIX = "enrolldesk"

CHANNELS = ("http", "db", "import", "roster", "auth")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Set by the request middleware in main.py
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _channel_of(logger_name: str) -> str:
    prefix, _, channel = logger_name.partition(".")
    if prefix == LOGGER_PREFIX and channel:
        return channel
    # Third-party loggers (uvicorn.error, sqlalchemy.engine, ...)
    return logger_name or "root"


class RequestContextFilter(logging.Filter):
    """Attach the channel and current request ID to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "channel", None):
            record.channel = _channel_of(record.name)
        record.request_id = request_id_var.get()
        return True


class StructuredJsonFormatter(logging.Formatter):
    """Render a record as one JSON object. Timestamps are UTC, millisecond precision."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "channel": getattr(record, "channel", None) or _channel_of(record.name),
            "message": record.getMessage(),
            "context": {"request_id": getattr(record, "request_id", "")},
            "extra": dict(getattr(record, "extra_data", None) or {}),
        }
        entry["context"].update(getattr(record, "context", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Route every logger through a single JSON handler on the root logger.

    `level` defaults to LOG_LEVEL and `stream` to stdout. Calling this again
    replaces the handler, so tests can point the output at a buffer.
    """
    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        get_logger(channel).setLevel(log_level)
    return root_logger


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger("{}.{}".format(LOGGER_PREFIX, channel))


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None,
                     exc_info: bool = False):
    """
    Log `message` on a channel logger with business identifiers in `context`
    (student_id, user_id, row) and metrics in `extra_data` (duration_ms,
    totals). Unknown level names log at INFO.
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        exc_info=exc_info,
        extra={"context": context or {}, "extra_data": extra_data or {}},
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())
