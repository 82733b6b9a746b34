"""Testing utilities for memoization.

This module provides test doubles and helpers for code using memoization:
- MockStore: Store with call tracking and configurable failures
- RecordingMemoHook: Records every cache event
- CallCounter: Counts invocations of a wrapped computation
- create_test_runtime: Isolated runtime with metrics enabled
- assert_store_stats: Assertion helper for store statistics

Example:
    >>> runtime, hook = create_test_runtime()
    >>> counter = CallCounter(lambda x: x * x)
    >>> square = memoize(counter, runtime=runtime)
    >>> square(3), square(3)
    (9, 9)
    >>> counter.count
    1
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from memoization.config import MemoizationConfig
from memoization.runtime import MemoRuntime


if TYPE_CHECKING:
    from collections.abc import Callable

    from memoization.stores import StoreStats


# =============================================================================
# Mock Store
# =============================================================================


class MockStore:
    """Mock store for testing.

    Provides dict-backed storage with call tracking.

    Example:
        >>> store = MockStore()
        >>> store.setdefault("key", "value")
        'value'
        >>> store.get("key")
        'value'
        >>> store.setdefault_call_count
        1
    """

    def __init__(
        self,
        *,
        simulate_miss: bool = False,
        raise_on_get: Exception | None = None,
        raise_on_setdefault: Exception | None = None,
    ) -> None:
        """Initialize mock store.

        Args:
            simulate_miss: Always return the default on get.
            raise_on_get: Exception to raise on get.
            raise_on_setdefault: Exception to raise on setdefault.
        """
        self._data: dict[Any, Any] = {}
        self._simulate_miss = simulate_miss
        self._raise_on_get = raise_on_get
        self._raise_on_setdefault = raise_on_setdefault

        self._get_calls: list[Any] = []
        self._setdefault_calls: list[tuple[Any, Any]] = []
        self._clear_calls = 0

    @property
    def get_call_count(self) -> int:
        """Get number of get calls."""
        return len(self._get_calls)

    @property
    def setdefault_call_count(self) -> int:
        """Get number of setdefault calls."""
        return len(self._setdefault_calls)

    @property
    def clear_call_count(self) -> int:
        """Get number of clear calls."""
        return self._clear_calls

    def get_get_calls(self) -> list[Any]:
        """Get all keys passed to get."""
        return list(self._get_calls)

    def get_setdefault_calls(self) -> list[tuple[Any, Any]]:
        """Get all setdefault call arguments."""
        return list(self._setdefault_calls)

    def get(self, key: Any, default: Any = None) -> Any:
        """Get a value from the store."""
        self._get_calls.append(key)

        if self._raise_on_get:
            raise self._raise_on_get

        if self._simulate_miss:
            return default

        return self._data.get(key, default)

    def setdefault(self, key: Any, value: Any) -> Any:
        """Insert a value unless the key is present."""
        self._setdefault_calls.append((key, value))

        if self._raise_on_setdefault:
            raise self._raise_on_setdefault

        return self._data.setdefault(key, value)

    def clear(self) -> None:
        """Clear all values."""
        self._clear_calls += 1
        self._data.clear()

    def __contains__(self, key: Any) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def reset(self) -> None:
        """Reset all state and call history."""
        self._data.clear()
        self._get_calls.clear()
        self._setdefault_calls.clear()
        self._clear_calls = 0


# =============================================================================
# Recording Hook
# =============================================================================


@dataclass(eq=False)
class RecordingMemoHook:
    """Hook recording every memoization event for verification in tests.

    Example:
        >>> hook = RecordingMemoHook()
        >>> hook.on_hit("key", "value", {})
        >>> hook.hit_count
        1
    """

    hits: list[tuple[Any, Any, dict[str, Any]]] = field(default_factory=list)
    misses: list[tuple[Any, dict[str, Any]]] = field(default_factory=list)
    stored: list[tuple[Any, Any, dict[str, Any]]] = field(default_factory=list)
    clears: list[tuple[int, dict[str, Any]]] = field(default_factory=list)

    @property
    def hit_count(self) -> int:
        return len(self.hits)

    @property
    def miss_count(self) -> int:
        return len(self.misses)

    @property
    def store_count(self) -> int:
        return len(self.stored)

    @property
    def clear_count(self) -> int:
        return len(self.clears)

    def on_hit(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        self.hits.append((key, value, context))

    def on_miss(self, key: Any, context: dict[str, Any]) -> None:
        self.misses.append((key, context))

    def on_store(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        self.stored.append((key, value, context))

    def on_clear(self, count: int, context: dict[str, Any]) -> None:
        self.clears.append((count, context))

    def reset(self) -> None:
        """Forget every recorded event."""
        self.hits.clear()
        self.misses.clear()
        self.stored.clear()
        self.clears.clear()


# =============================================================================
# Call Counter
# =============================================================================


class CallCounter:
    """Wrap a computation and count its invocations.

    The counter is a plain function-like object with its own state, so
    memoizing it directly gives it a private cache.

    Args:
        func: The computation to count.
        raises: Exception raised by every call instead of running ``func``.
    """

    def __init__(self, func: Callable[..., Any], *, raises: Exception | None = None) -> None:
        functools.update_wrapper(self, func)
        self._func = func
        self.raises = raises
        self.calls: list[tuple[tuple[Any, ...], dict[str, Any]]] = []

    @property
    def count(self) -> int:
        """Number of invocations so far."""
        return len(self.calls)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.calls.append((args, kwargs))
        if self.raises is not None:
            raise self.raises
        return self._func(*args, **kwargs)

    def reset(self) -> None:
        """Forget recorded calls."""
        self.calls.clear()


# =============================================================================
# Factories and Assertions
# =============================================================================


def create_test_runtime(**overrides: Any) -> tuple[MemoRuntime, RecordingMemoHook]:
    """Create an isolated runtime with a recording hook and metrics enabled.

    Args:
        **overrides: MemoizationConfig field values.

    Returns:
        ``(runtime, hook)``.
    """
    config = MemoizationConfig(collect_metrics=True).with_overrides(**overrides)
    hook = RecordingMemoHook()
    return MemoRuntime(config, hooks=[hook]), hook


def assert_store_stats(
    stats: StoreStats,
    *,
    size: int | None = None,
    hits: int | None = None,
    misses: int | None = None,
    evictions: int | None = None,
) -> None:
    """Assert store statistics match expected values.

    Raises:
        AssertionError: If any given value does not match.
    """
    if size is not None:
        assert stats.size == size, f"Expected size {size}, got {stats.size}"
    if hits is not None:
        assert stats.hits == hits, f"Expected {hits} hits, got {stats.hits}"
    if misses is not None:
        assert stats.misses == misses, f"Expected {misses} misses, got {stats.misses}"
    if evictions is not None:
        assert stats.evictions == evictions, (
            f"Expected {evictions} evictions, got {stats.evictions}"
        )
