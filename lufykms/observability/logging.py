"""
Structured Logging

JSON-structured logging with context propagation.

Design decisions:
- Structured JSON output
- Log level filtering
- Context enrichment (operation, document id, query hash)
- Handlers are sinks only; a failing handler never affects the caller
"""

import contextvars
import json
import sys
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, TextIO


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


@dataclass
class LogRecord:
    """A structured log record."""

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    logger_name: str = "lufykms"

    # Structured data
    data: dict[str, Any] = field(default_factory=dict)

    # Error info
    error: str | None = None
    error_type: str | None = None
    stack_trace: str | None = None

    # Ambient context set via StructuredLogger.context()
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result = {
            "timestamp": self.timestamp.isoformat(),
            "level": LogLevel(self.level).name,
            "logger": self.logger_name,
            "message": self.message,
        }

        if self.data:
            result["data"] = self.data

        if self.error:
            result["error"] = {
                "message": self.error,
                "type": self.error_type,
                "stack_trace": self.stack_trace,
            }

        result.update(self.context)

        return result

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class LogHandler:
    """Base class for log handlers."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG):
        self.level = level

    def should_handle(self, level: LogLevel) -> bool:
        """Check if this handler should process a log at this level."""
        return level >= self.level

    def handle(self, record: LogRecord) -> None:
        """Handle a log record."""
        pass


class ConsoleHandler(LogHandler):
    """Outputs logs to console."""

    def __init__(
        self,
        level: LogLevel = LogLevel.DEBUG,
        stream: TextIO | None = None,
        json_output: bool = True,
    ):
        super().__init__(level)
        self.stream = stream or sys.stderr
        self.json_output = json_output

    def handle(self, record: LogRecord) -> None:
        if not self.should_handle(record.level):
            return

        if self.json_output:
            output = record.to_json()
        else:
            output = (
                f"[{record.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] "
                f"{LogLevel(record.level).name:8s} [{record.logger_name}] {record.message}"
            )
            if record.data:
                output += f" | {record.data}"
            if record.error:
                output += f" | ERROR: {record.error}"

        print(output, file=self.stream)


class BufferHandler(LogHandler):
    """Buffers logs in memory for testing."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG, max_records: int = 1000):
        super().__init__(level)
        self.records: list[LogRecord] = []
        self._max_records = max_records

    def handle(self, record: LogRecord) -> None:
        if not self.should_handle(record.level):
            return

        self.records.append(record)

        if len(self.records) > self._max_records:
            self.records = self.records[-self._max_records :]

    def messages(self, level: LogLevel | None = None) -> list[str]:
        """Messages recorded, optionally at one level only."""
        return [r.message for r in self.records if level is None or r.level == level]

    def clear(self) -> None:
        self.records.clear()


# Context variables for log enrichment
_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


class StructuredLogger:
    """
    Main structured logging interface.

    Features:
    - JSON structured output
    - Context propagation
    - Multiple handlers
    - Level filtering
    """

    def __init__(
        self,
        name: str = "lufykms",
        level: LogLevel = LogLevel.INFO,
        handlers: list[LogHandler] | None = None,
    ):
        self.name = name
        self.level = level
        self.handlers = handlers if handlers is not None else [ConsoleHandler()]

    def _log(
        self,
        level: LogLevel,
        message: str,
        data: dict[str, Any] | None = None,
        error: Exception | None = None,
        **extra: Any,
    ) -> None:
        if level < self.level:
            return

        record = LogRecord(
            level=level,
            message=message,
            logger_name=self.name,
            data={**(data or {}), **extra},
            context=dict(_log_context.get()),
        )

        if error:
            record.error = str(error)
            record.error_type = type(error).__name__
            if error.__traceback__ is not None:
                record.stack_trace = "".join(traceback.format_exception(error))

        for handler in self.handlers:
            try:
                handler.handle(record)
            except Exception:
                pass  # Logging must never break retrieval

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, error: Exception | None = None, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, error=error, **kwargs)

    def critical(self, message: str, error: Exception | None = None, **kwargs: Any) -> None:
        self._log(LogLevel.CRITICAL, message, error=error, **kwargs)

    def child(self, name: str) -> "StructuredLogger":
        """Logger sharing this logger's handlers and level under a new name."""
        return StructuredLogger(name=name, level=self.level, handlers=self.handlers)

    @staticmethod
    @contextmanager
    def context(**kwargs: Any):
        """
        Context manager for adding context to logs.

        Usage:
            with logger.context(operation="search", query_hash="ab12"):
                logger.info("Cache miss")
        """
        current = _log_context.get()
        token = _log_context.set({**current, **kwargs})

        try:
            yield
        finally:
            _log_context.reset(token)

    @staticmethod
    def clear_context() -> None:
        """Clear all context values."""
        _log_context.set({})


_default_level: LogLevel = LogLevel.INFO
_default_handlers: list[LogHandler] | None = None


def get_logger(name: str = "lufykms") -> StructuredLogger:
    """Get a logger using the process-wide configuration."""
    handlers = _default_handlers if _default_handlers is not None else [ConsoleHandler()]
    return StructuredLogger(name=name, level=_default_level, handlers=handlers)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    json_output: bool = True,
    handlers: list[LogHandler] | None = None,
) -> StructuredLogger:
    """Configure the process-wide defaults and return the root logger."""
    global _default_level, _default_handlers

    if isinstance(level, str):
        level = LogLevel[level.upper()]

    _default_level = level
    _default_handlers = handlers or [ConsoleHandler(level=level, json_output=json_output)]

    return get_logger()
