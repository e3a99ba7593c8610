"""Structured logging configuration with refill context.

This module provides structured JSON logging with:
- Correlation IDs for tracing one refill attempt end to end
- Contextual fields (channel, mint)
- Consistent log formatting
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variables for refill tracking
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
channel_var: ContextVar[Optional[str]] = ContextVar("channel", default=None)
mint_id_var: ContextVar[Optional[str]] = ContextVar("mint_id", default=None)

_CONTEXT_FIELDS = ("correlation_id", "channel", "mint_id")

_RESERVED_ATTRS = frozenset((
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
) + _CONTEXT_FIELDS)


class RefillContextFilter(logging.Filter):
    """Logging filter that adds refill context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        record.channel = channel_var.get()
        record.mint_id = mint_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed via `extra=`
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (True) or simple format (False)
        log_file: Optional file path for logging output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(channel)s %(correlation_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RefillContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RefillContextFilter())
        root_logger.addHandler(file_handler)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return f"cor_{uuid.uuid4().hex[:16]}"


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        channel: Optional[str] = None,
        mint_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ):
        self.channel = channel
        self.mint_id = mint_id
        self.correlation_id = correlation_id or generate_correlation_id()
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        self._tokens = [
            (correlation_id_var, correlation_id_var.set(self.correlation_id)),
            (channel_var, channel_var.set(self.channel)),
            (mint_id_var, mint_id_var.set(self.mint_id)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []
