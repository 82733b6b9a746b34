"""Tests for the structured logging module."""

from __future__ import annotations

import io
import json
import logging

from memoization.logging import (
    BufferingHandler,
    JSONFormatter,
    LevelFilter,
    LogContext,
    LoggerRegistry,
    LogLevel,
    LogRecord,
    MemoLogger,
    StdlibLoggerAdapter,
    StreamHandler,
    TextFormatter,
    get_current_context,
)


class TestLogLevel:
    """Tests for LogLevel."""

    def test_from_string(self) -> None:
        """Test case-insensitive parsing with INFO fallback."""
        assert LogLevel.from_string("debug") is LogLevel.DEBUG
        assert LogLevel.from_string("nonsense") is LogLevel.INFO

    def test_stdlib_round_trip(self) -> None:
        """Test conversion to and from stdlib levels."""
        assert LogLevel.WARNING.to_stdlib() == logging.WARNING
        assert LogLevel.from_stdlib(logging.ERROR) is LogLevel.ERROR


class TestLogContext:
    """Tests for context propagation."""

    def test_nested_contexts_merge(self) -> None:
        """Test inner contexts extend outer ones and restore on exit."""
        with LogContext(operation="reload"):
            with LogContext(component="registry", target="fib"):
                context = get_current_context()
                assert context.operation == "reload"
                assert context.component == "registry"
                assert context.extra["target"] == "fib"
            assert get_current_context().component is None
        assert get_current_context().operation is None


class TestFormatters:
    """Tests for text and JSON formatters."""

    def test_text_formatter(self) -> None:
        """Test the text format carries level, logger, message and fields."""
        record = LogRecord(
            level=LogLevel.DEBUG,
            message="Store created",
            logger_name="memoization.registry",
            extra={"store_kind": "identity"},
        )
        text = TextFormatter().format(record)
        assert "[DEBUG]" in text
        assert "memoization.registry: Store created" in text
        assert "store_kind=identity" in text

    def test_json_formatter(self) -> None:
        """Test the JSON format is parseable and flat."""
        record = LogRecord(
            level=LogLevel.INFO,
            message="Stores cleared",
            logger_name="memoization.invalidation",
            extra={"stores": 2},
        )
        data = json.loads(JSONFormatter().format(record))
        assert data["level"] == "INFO"
        assert data["message"] == "Stores cleared"
        assert data["stores"] == 2


class TestMemoLogger:
    """Tests for MemoLogger."""

    def test_level_threshold(self) -> None:
        """Test records below the logger level are dropped."""
        handler = BufferingHandler()
        logger = MemoLogger("test", level=LogLevel.INFO, handlers=[handler])
        logger.debug("hidden")
        logger.info("shown", key="value")
        assert [r.message for r in handler.records] == ["shown"]
        assert handler.records[0].extra == {"key": "value"}

    def test_filter(self) -> None:
        """Test filters reject records."""
        handler = BufferingHandler()
        logger = MemoLogger("test", handlers=[handler], filters=[LevelFilter(LogLevel.WARNING)])
        logger.info("dropped")
        logger.error("kept")
        assert [r.message for r in handler.records] == ["kept"]

    def test_failing_handler_is_isolated(self) -> None:
        """Test a raising handler does not break logging calls."""

        class Broken:
            def handle(self, record: LogRecord) -> None:
                raise RuntimeError("broken")

            def flush(self) -> None: ...

            def close(self) -> None: ...

        buffer = BufferingHandler()
        logger = MemoLogger("test", handlers=[Broken(), buffer])
        logger.info("still logged")
        assert len(buffer.records) == 1

    def test_exception_captures_active_error(self) -> None:
        """Test exception() attaches the error being handled."""
        handler = BufferingHandler()
        logger = MemoLogger("test", handlers=[handler])
        try:
            raise ValueError("bad")
        except ValueError:
            logger.exception("Failed")
        assert isinstance(handler.records[0].exc_info, ValueError)


class TestLoggerRegistry:
    """Tests for LoggerRegistry."""

    def test_same_logger_returned(self) -> None:
        """Test loggers are cached by name."""
        registry = LoggerRegistry()
        assert registry.get_logger("memoization.a") is registry.get_logger("memoization.a")

    def test_child_propagates_once(self) -> None:
        """Test a child record reaches root handlers exactly once."""
        registry = LoggerRegistry()
        handler = BufferingHandler()
        registry.configure(level=LogLevel.DEBUG, handlers=[handler])
        registry.get_logger("memoization")
        child = registry.get_logger("memoization.registry")
        child.debug("Store created")
        assert len(handler.records) == 1

    def test_configure_updates_levels(self) -> None:
        """Test configure applies the level to existing loggers."""
        registry = LoggerRegistry()
        logger = registry.get_logger("memoization.engine")
        registry.configure(level=LogLevel.ERROR, handlers=[BufferingHandler()])
        assert logger.level is LogLevel.ERROR

    def test_disable(self) -> None:
        """Test disabled loggers emit nothing."""
        registry = LoggerRegistry()
        handler = BufferingHandler()
        registry.configure(level=LogLevel.DEBUG, handlers=[handler])
        logger = registry.get_logger("memoization.runtime")
        registry.disable()
        logger.info("dropped")
        registry.enable()
        logger.info("kept")
        assert [r.message for r in handler.records] == ["kept"]


class TestHandlers:
    """Tests for stream and stdlib handlers."""

    def test_stream_handler_writes(self) -> None:
        """Test formatted lines are written to the stream."""
        stream = io.StringIO()
        handler = StreamHandler(stream=stream, level=LogLevel.INFO)
        logger = MemoLogger("test", handlers=[handler])
        logger.debug("hidden")
        logger.info("visible")
        assert "visible" in stream.getvalue()
        assert "hidden" not in stream.getvalue()

    def test_stdlib_adapter(self, caplog) -> None:
        """Test records are forwarded to the standard logging module."""
        stdlib_logger = logging.getLogger("memoization.tests.adapter")
        logger = MemoLogger("test", handlers=[StdlibLoggerAdapter(stdlib_logger)])
        with caplog.at_level(logging.INFO, logger="memoization.tests.adapter"):
            logger.info("Stores cleared", stores=3)
        assert "Stores cleared | stores=3" in caplog.text

    def test_stream_handler_survives_broken_stream(self) -> None:
        """Test write failures do not escape the handler."""

        class ClosedStream:
            def write(self, text: str) -> None:
                raise ValueError("I/O operation on closed file")

            def flush(self) -> None:
                raise ValueError("I/O operation on closed file")

        handler = StreamHandler(stream=ClosedStream())
        handler.handle(LogRecord(level=LogLevel.INFO, message="Stores cleared", logger_name="test"))
        handler.close()

    def test_buffering_handler_keeps_latest(self) -> None:
        """Test a bounded buffer keeps the most recent records."""
        handler = BufferingHandler(max_records=2)
        logger = MemoLogger("test", handlers=[handler])
        for n in range(3):
            logger.debug("Store created", n=n)
        assert [r.extra["n"] for r in handler.records] == [1, 2]

        handler.close()
        assert handler.records == []

    def test_text_formatter_includes_context(self) -> None:
        """Test context fields are rendered next to record fields."""
        handler = BufferingHandler()
        logger = MemoLogger("memoization.registry", handlers=[handler])
        with LogContext(operation="clear_all"):
            logger.info("Stores cleared", stores=2)
        text = TextFormatter().format(handler.records[0])
        assert "memoization.registry: Stores cleared | " in text
        assert "operation=clear_all" in text
        assert "stores=2" in text
