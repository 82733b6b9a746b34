"""Structured logging for the memoization package.

Loggers produced here accept keyword fields alongside the message and carry
the active LogContext, so registry and invalidation events can be traced back
to the operation that triggered them.

- Structured logging with context propagation
- Text and JSON formatting
- Bridge to the standard library ``logging`` module
- Level filtering

Example:
    >>> from memoization.logging import get_logger, LogContext
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation="warmup"):
    ...     logger.info("Stores cleared", count=3)
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from collections import deque
from abc import abstractmethod
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    Self,
    runtime_checkable,
)


if TYPE_CHECKING:
    from collections.abc import Mapping


# =============================================================================
# Levels
# =============================================================================


class LogLevel(Enum):
    """Log severity levels with numeric values for comparison.

    Attributes:
        DEBUG: Detailed debugging information.
        INFO: General operational information.
        WARNING: Warning conditions that should be reviewed.
        ERROR: Error conditions that need attention.
        CRITICAL: Critical conditions requiring immediate action.
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    def to_stdlib(self) -> int:
        """Convert to stdlib logging level."""
        return self.value

    @classmethod
    def from_stdlib(cls, level: int) -> LogLevel:
        """Create from stdlib logging level."""
        for log_level in cls:
            if log_level.value == level:
                return log_level
        return cls.INFO

    @classmethod
    def from_string(cls, level: str) -> LogLevel:
        """Create from string representation."""
        try:
            return cls[level.upper()]
        except KeyError:
            return cls.INFO


# =============================================================================
# Context Management
# =============================================================================


@dataclass(frozen=True, slots=True)
class LogContextData:
    """Immutable container for log context data.

    Attributes:
        operation: Current operation name.
        component: Memoization component emitting the records.
        correlation_id: Request/transaction correlation ID.
        extra: Additional context fields.
    """

    operation: str | None = None
    component: str | None = None
    correlation_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def merge(self, other: LogContextData) -> LogContextData:
        """Create a new context with merged data.

        Args:
            other: Context to merge with (takes precedence).

        Returns:
            New LogContextData with merged values.
        """
        return LogContextData(
            operation=other.operation or self.operation,
            component=other.component or self.component,
            correlation_id=other.correlation_id or self.correlation_id,
            extra={**self.extra, **other.extra},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        if self.operation:
            result["operation"] = self.operation
        if self.component:
            result["component"] = self.component
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        result.update(self.extra)
        return result


_log_context: ContextVar[LogContextData] = ContextVar("memoization_log_context")


class LogContext:
    """Context manager for log context propagation.

    Nested contexts merge, inner values taking precedence.

    Example:
        >>> with LogContext(operation="reload"):
        ...     logger.info("Redefined")  # includes operation
        ...     with LogContext(component="registry"):
        ...         logger.info("Store created")  # includes both
    """

    def __init__(
        self,
        *,
        operation: str | None = None,
        component: str | None = None,
        correlation_id: str | None = None,
        **extra: Any,
    ) -> None:
        """Initialize log context.

        Args:
            operation: Operation name.
            component: Component name.
            correlation_id: Correlation ID for tracing.
            **extra: Additional context fields.
        """
        self._new_context = LogContextData(
            operation=operation,
            component=component,
            correlation_id=correlation_id,
            extra=extra,
        )
        self._token: Any = None

    def __enter__(self) -> Self:
        """Enter context and set new context data."""
        merged = get_current_context().merge(self._new_context)
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context and restore previous context."""
        if self._token is not None:
            _log_context.reset(self._token)


def get_current_context() -> LogContextData:
    """Get the current log context.

    Returns:
        Current LogContextData or empty context if none set.
    """
    return _log_context.get(LogContextData())


# =============================================================================
# Log Record
# =============================================================================


@dataclass(slots=True)
class LogRecord:
    """Structured log record.

    Attributes:
        level: Log severity level.
        message: Log message.
        logger_name: Name of the logger.
        timestamp: When the log was created.
        context: Associated context data.
        extra: Additional structured fields.
        exc_info: Exception information if any.
    """

    level: LogLevel
    message: str
    logger_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    context: LogContextData = field(default_factory=LogContextData)
    extra: dict[str, Any] = field(default_factory=dict)
    exc_info: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = {
            "level": self.level.name,
            "message": self.message,
            "logger": self.logger_name,
            "timestamp": self.timestamp.isoformat(),
            **self.context.to_dict(),
            **self.extra,
        }
        if self.exc_info:
            result["exception"] = str(self.exc_info)
            result["exception_type"] = type(self.exc_info).__name__
        return result


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class LogHandler(Protocol):
    """Protocol for log handlers."""

    @abstractmethod
    def handle(self, record: LogRecord) -> None:
        """Handle a log record.

        Args:
            record: Log record to process.
        """
        ...

    @abstractmethod
    def flush(self) -> None:
        """Flush any buffered output."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the handler and release resources."""
        ...


@runtime_checkable
class LogFormatter(Protocol):
    """Protocol for log formatters."""

    @abstractmethod
    def format(self, record: LogRecord) -> str:
        """Format a log record.

        Args:
            record: Log record to format.

        Returns:
            Formatted string representation.
        """
        ...


@runtime_checkable
class LogFilter(Protocol):
    """Protocol for log filters."""

    @abstractmethod
    def filter(self, record: LogRecord) -> bool:
        """Determine if record should be logged.

        Args:
            record: Log record to evaluate.

        Returns:
            True if record should be logged, False otherwise.
        """
        ...


# =============================================================================
# Formatters
# =============================================================================


def _render_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


class TextFormatter:
    """One line per record: timestamp, level, logger and message, then fields.

    Example output:
        2024-01-15T10:30:45+00:00 [DEBUG] memoization.registry: Store created | store_kind=dict
    """

    def format(self, record: LogRecord) -> str:
        line = (
            f"{record.timestamp.isoformat()} [{record.level.name}] "
            f"{record.logger_name}: {record.message}"
        )
        fields = {**record.context.to_dict(), **record.extra}
        if fields:
            line = f"{line} | {_render_fields(fields)}"
        if record.exc_info:
            line = f"{line} | exception={record.exc_info!r}"
        return line


class JSONFormatter:
    """One flat JSON object per record."""

    def __init__(self, indent: int | None = None) -> None:
        self._indent = indent

    def format(self, record: LogRecord) -> str:
        return json.dumps(record.to_dict(), indent=self._indent, default=str)


# =============================================================================
# Handlers
# =============================================================================


class StreamHandler:
    """Write formatted records to a stream (stderr by default).

    Write and flush errors are suppressed; a broken stream never fails the
    memoized call that logged.
    """

    def __init__(
        self,
        stream: Any = None,
        formatter: LogFormatter | None = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        self._stream = stream or sys.stderr
        self._formatter = formatter or TextFormatter()
        self._level = level
        self._closed = False

    def handle(self, record: LogRecord) -> None:
        if self._closed or record.level.value < self._level.value:
            return
        with contextlib.suppress(Exception):
            self._stream.write(f"{self._formatter.format(record)}\n")

    def flush(self) -> None:
        if self._closed:
            return
        with contextlib.suppress(Exception):
            self._stream.flush()

    def close(self) -> None:
        self.flush()
        self._closed = True


class BufferingHandler:
    """Keep records in memory for inspection.

    Args:
        max_records: Number of most recent records kept (all when None).
    """

    def __init__(self, max_records: int | None = None) -> None:
        self._records: deque[LogRecord] = deque(maxlen=max_records)

    @property
    def records(self) -> list[LogRecord]:
        """Records received so far, oldest first."""
        return list(self._records)

    def handle(self, record: LogRecord) -> None:
        self._records.append(record)

    def clear(self) -> None:
        self._records.clear()

    def flush(self) -> None:
        """Records stay available until ``clear`` or ``close``."""

    def close(self) -> None:
        self.clear()


class StdlibLoggerAdapter:
    """Forward records to a standard library logger (``memoization`` by default)."""

    def __init__(self, stdlib_logger: logging.Logger | None = None) -> None:
        self._logger = stdlib_logger or logging.getLogger("memoization")

    def handle(self, record: LogRecord) -> None:
        fields = {**record.context.to_dict(), **record.extra}
        message = f"{record.message} | {_render_fields(fields)}" if fields else record.message
        self._logger.log(record.level.to_stdlib(), message, exc_info=record.exc_info)

    def flush(self) -> None:
        for handler in self._logger.handlers:
            handler.flush()

    def close(self) -> None:
        self.flush()


# =============================================================================
# Filters
# =============================================================================


class LevelFilter:
    """Only allows records at or above the specified level."""

    def __init__(self, min_level: LogLevel) -> None:
        """Initialize the filter.

        Args:
            min_level: Minimum level to allow.
        """
        self._min_level = min_level

    def filter(self, record: LogRecord) -> bool:
        """Filter by level."""
        return record.level.value >= self._min_level.value


# =============================================================================
# Logger Implementation
# =============================================================================


class MemoLogger:
    """Logger with structured keyword fields and context propagation.

    Example:
        >>> logger = MemoLogger("memoization.registry")
        >>> logger.debug("Store created", identity="fib", store_kind="IdentityStore")
    """

    def __init__(
        self,
        name: str,
        level: LogLevel = LogLevel.DEBUG,
        handlers: list[LogHandler] | None = None,
        filters: list[LogFilter] | None = None,
        propagate: bool = True,
    ) -> None:
        """Initialize the logger.

        Args:
            name: Logger name (typically __name__).
            level: Minimum log level.
            handlers: Log handlers.
            filters: Log filters.
            propagate: Whether to propagate to parent loggers.
        """
        self.name = name
        self.level = level
        self._handlers: list[LogHandler] = handlers or []
        self._filters: list[LogFilter] = filters or []
        self._propagate = propagate
        self._parent: MemoLogger | None = None
        self._disabled = False

    def add_handler(self, handler: LogHandler) -> None:
        """Add a handler to the logger."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_handler(self, handler: LogHandler) -> None:
        """Remove a handler from the logger."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def add_filter(self, log_filter: LogFilter) -> None:
        """Add a filter to the logger."""
        if log_filter not in self._filters:
            self._filters.append(log_filter)

    def is_enabled_for(self, level: LogLevel) -> bool:
        """Check if logger is enabled for the given level.

        Args:
            level: Level to check.

        Returns:
            True if logging is enabled for level.
        """
        return not self._disabled and level.value >= self.level.value

    def _should_log(self, record: LogRecord) -> bool:
        return all(log_filter.filter(record) for log_filter in self._filters)

    def _emit(self, record: LogRecord) -> None:
        for handler in self._handlers:
            try:
                handler.handle(record)
            except Exception:
                # Fail silently to avoid logging loops
                pass

    def _log(
        self,
        level: LogLevel,
        message: str,
        exc_info: BaseException | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.is_enabled_for(level):
            return

        record = LogRecord(
            level=level,
            message=message,
            logger_name=self.name,
            context=get_current_context(),
            extra=kwargs,
            exc_info=exc_info,
        )
        if not self._should_log(record):
            return

        self._emit(record)
        if self._propagate and self._parent:
            self._parent._handle_child_record(record)

    def _handle_child_record(self, record: LogRecord) -> None:
        if self._disabled or not self._should_log(record):
            return

        self._emit(record)
        if self._propagate and self._parent:
            self._parent._handle_child_record(record)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log at DEBUG level."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log at INFO level."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log at WARNING level."""
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: BaseException | None = None, **kwargs: Any) -> None:
        """Log at ERROR level."""
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log the exception currently being handled at ERROR level."""
        self._log(LogLevel.ERROR, message, exc_info=sys.exc_info()[1], **kwargs)


# =============================================================================
# Logger Registry
# =============================================================================


class LoggerRegistry:
    """Registry for managing loggers with hierarchical naming."""

    def __init__(self) -> None:
        """Initialize the registry."""
        self._loggers: dict[str, MemoLogger] = {}
        self._root_handlers: list[LogHandler] = []
        self._root_level: LogLevel = LogLevel.INFO
        self._configured = False

    def get_logger(
        self,
        name: str,
        level: LogLevel | None = None,
    ) -> MemoLogger:
        """Get or create a logger by name.

        Args:
            name: Logger name.
            level: Optional level override.

        Returns:
            MemoLogger instance.
        """
        if name in self._loggers:
            return self._loggers[name]

        logger = MemoLogger(name=name, level=level or self._root_level)

        # Children reach the root handlers through their parent
        if "." in name:
            parent_name = name.rsplit(".", 1)[0]
            if parent_name in self._loggers:
                logger._parent = self._loggers[parent_name]
        if logger._parent is None:
            logger._handlers = list(self._root_handlers)

        self._loggers[name] = logger
        return logger

    def configure(
        self,
        level: LogLevel = LogLevel.INFO,
        handlers: list[LogHandler] | None = None,
        format: str = "text",
    ) -> None:
        """Configure the root logging settings.

        Args:
            level: Default log level.
            handlers: Default handlers.
            format: Format type ('text' or 'json').
        """
        self._root_level = level

        if handlers:
            self._root_handlers = handlers
        elif not self._configured:
            formatter: LogFormatter = JSONFormatter() if format == "json" else TextFormatter()
            self._root_handlers = [StreamHandler(formatter=formatter, level=level)]

        self._configured = True

        for logger in self._loggers.values():
            logger.level = level
            if logger._parent is None:
                logger._handlers = list(self._root_handlers)

    def disable(self) -> None:
        """Disable all logging."""
        for logger in self._loggers.values():
            logger._disabled = True

    def enable(self) -> None:
        """Enable all logging."""
        for logger in self._loggers.values():
            logger._disabled = False


_registry = LoggerRegistry()


def get_logger(name: str, level: LogLevel | None = None) -> MemoLogger:
    """Get a logger by name.

    Args:
        name: Logger name (typically __name__).
        level: Optional level override.

    Returns:
        MemoLogger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Runtime created")
    """
    return _registry.get_logger(name, level)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    handlers: list[LogHandler] | None = None,
    format: str = "text",
) -> None:
    """Configure global logging settings.

    Args:
        level: Default log level (LogLevel or string).
        handlers: Default handlers.
        format: Format type ('text' or 'json').

    Example:
        >>> configure_logging(level="DEBUG", format="json")
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)
    _registry.configure(level=level, handlers=handlers, format=format)
