"""Tests for memoization hooks."""

from __future__ import annotations

from typing import Any

from memoization.hooks import CompositeMemoHook, LoggingMemoHook, MemoHook, MetricsMemoHook
from memoization.logging import BufferingHandler, LogLevel, get_logger
from memoization.testing import RecordingMemoHook


CONTEXT = {"identity": "Shared(app.f)", "store_kind": "identity"}


class TestMetricsMemoHook:
    """Tests for MetricsMemoHook."""

    def test_counts(self) -> None:
        """Test totals and hit rate."""
        hook = MetricsMemoHook()
        hook.on_miss("k", CONTEXT)
        hook.on_store("k", 1, CONTEXT)
        hook.on_hit("k", 1, CONTEXT)
        hook.on_clear(3, {"scope": "all", "target": None})
        assert hook.hits == 1
        assert hook.misses == 1
        assert hook.stores == 1
        assert hook.clears == 3
        assert hook.hit_rate == 0.5

    def test_identity_stats(self) -> None:
        """Test counts are kept per identity."""
        hook = MetricsMemoHook()
        hook.on_hit("k", 1, CONTEXT)
        hook.on_hit("k", 1, {"identity": "Shared(app.g)", "store_kind": "identity"})
        assert hook.get_identity_stats("Shared(app.f)") == {"hits": 1, "misses": 0, "stores": 0}
        assert hook.get_identity_stats("unknown") == {"hits": 0, "misses": 0, "stores": 0}

    def test_reset(self) -> None:
        """Test reset zeroes everything."""
        hook = MetricsMemoHook()
        hook.on_hit("k", 1, CONTEXT)
        hook.reset()
        assert hook.hits == 0
        assert hook.hit_rate == 0.0


class TestLoggingMemoHook:
    """Tests for LoggingMemoHook."""

    def test_logs_events(self) -> None:
        """Test events are logged at DEBUG with their context."""
        logger = get_logger("memoization.tests.hooks")
        handler = BufferingHandler()
        logger.level = LogLevel.DEBUG
        logger.add_handler(handler)
        try:
            hook = LoggingMemoHook("memoization.tests.hooks")
            hook.on_miss("k", CONTEXT)
            hook.on_clear(2, {"scope": "all", "target": None})
        finally:
            logger.remove_handler(handler)

        messages = [record.message for record in handler.records]
        assert messages == ["Memo miss", "Memo clear"]
        assert handler.records[0].extra["identity"] == "Shared(app.f)"
        assert handler.records[1].extra["stores"] == 2


class TestCompositeMemoHook:
    """Tests for CompositeMemoHook."""

    def test_fan_out(self) -> None:
        """Test every hook receives every event."""
        first, second = RecordingMemoHook(), RecordingMemoHook()
        composite = CompositeMemoHook([first, second])
        composite.on_hit("k", 1, CONTEXT)
        composite.on_store("k", 1, CONTEXT)
        assert first.hit_count == second.hit_count == 1
        assert first.store_count == second.store_count == 1

    def test_failing_hook_isolated(self) -> None:
        """Test a raising hook does not stop the others."""

        class Broken(RecordingMemoHook):
            def on_miss(self, key: Any, context: dict[str, Any]) -> None:
                raise RuntimeError("broken")

        recording = RecordingMemoHook()
        composite = CompositeMemoHook([Broken(), recording])
        composite.on_miss("k", CONTEXT)
        assert recording.miss_count == 1

    def test_add_remove_and_truthiness(self) -> None:
        """Test hook management."""
        composite = CompositeMemoHook()
        assert not composite
        hook = RecordingMemoHook()
        composite.add_hook(hook)
        assert composite
        assert composite.hooks == [hook]
        composite.remove_hook(hook)
        assert not composite

    def test_protocol(self) -> None:
        """Test the package hooks satisfy MemoHook."""
        hooks = (MetricsMemoHook(), LoggingMemoHook(), CompositeMemoHook(), RecordingMemoHook())
        for hook in hooks:
            assert isinstance(hook, MemoHook)
