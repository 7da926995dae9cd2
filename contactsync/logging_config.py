"""Structured JSON logging configuration."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from contactsync.core.context import get_current_request_id, get_user_context
from contactsync.settings import settings

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "taskName", "request_id", "user_id", "message",
))

# Plaintext numbers never reach the log stream; hashes are cut to a short prefix
_PLAINTEXT_PHONE_FIELDS = frozenset(("phone", "phone_number", "phone_numbers"))
_HASH_FIELDS = frozenset(("phone_hash", "contact_hash"))
_HASH_PREFIX_LENGTH = 8


def redact_field(key: str, value: Any) -> Any:
    if key in _PLAINTEXT_PHONE_FIELDS:
        return "[redacted]"
    if key in _HASH_FIELDS and isinstance(value, str):
        return value[:_HASH_PREFIX_LENGTH]
    return value


class ContextFilter(logging.Filter):
    """Filter that adds request and user context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context variables to the log record."""
        record.request_id = get_current_request_id() or ""
        record.user_id = get_user_context() or ""
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Context fields (populated by ContextFilter)
        if getattr(record, "request_id", None):
            log_data["request_id"] = record.request_id
        if getattr(record, "user_id", None):
            log_data["user_id"] = record.user_id

        # Any extra fields passed via logger.info(..., extra={...})
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = redact_field(key, value)

        return json.dumps(log_data, default=str)


def setup_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter())
    console_handler.addFilter(ContextFilter())

    root_logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(
        logging.INFO if settings.environment == "production" else logging.WARNING
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
