"""Structured logging for MongoSense.

MongoSense modules log through plain ``logging.getLogger(__name__)`` loggers
and attach context with ``extra=`` (collection_name, operation, stage_kind,
field_count). This module only decides how those records are rendered:

- ConsoleFormatter: colored, pipe-separated, human-readable lines
- JsonFormatter: one JSON object per line for machine parsing
- CorrelationIdFilter: stamps every record with a correlation ID
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone

from mongosense.config.settings import settings

# Context attributes that builder and optimizer pass through ``extra``
CONTEXT_ATTRS = (
    "collection_name",
    "operation",
    "stage_kind",
    "field_count",
    "status",
)

# Attributes every LogRecord carries; anything else came from ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to all log records."""

    def __init__(self, correlation_id: str | None = None):
        super().__init__()
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = self.correlation_id
        return True


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_extra: bool = True):
        """Initialize JSON formatter.

        Args:
            include_extra: Include extra fields in JSON output
        """
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for attr in CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = value

        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in _RESERVED_ATTRS and key not in log_data:
                    log_data[key] = value

        return json.dumps(log_data, default=str, separators=(",", ":"))


class ConsoleFormatter(logging.Formatter):
    """Console formatter with colors and inline context."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        parts = [
            f"{color}{self.BOLD}{record.levelname}{self.RESET}",
            timestamp,
            record.name,
        ]

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            parts.append(f"CID:{correlation_id[:8]}")

        context_parts = [
            f"{attr}:{getattr(record, attr)}" for attr in CONTEXT_ATTRS if hasattr(record, attr)
        ]
        if context_parts:
            parts.append(f"[{', '.join(context_parts)}]")

        parts.append(record.getMessage())

        return " | ".join(parts)


def configure_logging(
    level: str = "INFO",
    structured: bool = False,
    correlation_id: str | None = None,
    logger_name: str = "mongosense",
) -> logging.Logger:
    """Configure the MongoSense logger hierarchy.

    Replaces any handler previously installed by this function, so calling it
    again with different options is safe.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        structured: Use JSON lines instead of the console format
        correlation_id: Correlation ID stamped on every record (generated if None)
        logger_name: Root of the logger hierarchy to configure

    Returns:
        The configured logger
    """
    target = logging.getLogger(logger_name)
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    target.setLevel(numeric_level)

    for handler in target.handlers[:]:
        target.removeHandler(handler)
    for existing in target.filters[:]:
        if isinstance(existing, CorrelationIdFilter):
            target.removeFilter(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if structured else ConsoleFormatter())
    handler.setLevel(numeric_level)
    handler.addFilter(CorrelationIdFilter(correlation_id))
    target.addHandler(handler)

    return target


def configure_from_settings() -> logging.Logger:
    """Configure logging from the global settings."""
    return configure_logging(level=settings.log_level, structured=settings.log_structured)
