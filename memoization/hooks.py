"""Hooks observing memoization events.

Hooks are told about every hit, miss and stored result, and about every
store cleared by invalidation. They observe only: a hook cannot change what a
memoized call returns.

Example:
    >>> metrics = MetricsMemoHook()
    >>> runtime = MemoRuntime(hooks=[metrics])
    >>> ...
    >>> metrics.hit_rate
    0.5
"""

from __future__ import annotations

import contextlib
import threading
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class MemoHook(Protocol):
    """Protocol for memoization event hooks."""

    @abstractmethod
    def on_hit(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        """Called when a lookup finds a stored result.

        Args:
            key: The cache key.
            value: The stored value.
            context: ``identity`` and ``store_kind`` of the lookup.
        """
        ...

    @abstractmethod
    def on_miss(self, key: Any, context: dict[str, Any]) -> None:
        """Called when a lookup finds nothing and the computation will run."""
        ...

    @abstractmethod
    def on_store(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        """Called after a computed result has been stored."""
        ...

    @abstractmethod
    def on_clear(self, count: int, context: dict[str, Any]) -> None:
        """Called after invalidation cleared ``count`` stores.

        Args:
            count: Number of stores cleared.
            context: ``scope`` ('identity', 'category' or 'all') and target.
        """
        ...


class LoggingMemoHook:
    """Hook that logs memoization events at DEBUG level."""

    def __init__(self, logger_name: str | None = None) -> None:
        """Initialize logging hook.

        Args:
            logger_name: Logger name (default: memoization.hooks).
        """
        from memoization.logging import get_logger

        self._logger = get_logger(logger_name or "memoization.hooks")

    def on_hit(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        self._logger.debug("Memo hit", key=repr(key), **context)

    def on_miss(self, key: Any, context: dict[str, Any]) -> None:
        self._logger.debug("Memo miss", key=repr(key), **context)

    def on_store(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        self._logger.debug("Memo store", key=repr(key), **context)

    def on_clear(self, count: int, context: dict[str, Any]) -> None:
        self._logger.debug("Memo clear", stores=count, **context)


class MetricsMemoHook:
    """Hook counting memoization events, overall and per identity."""

    def __init__(self) -> None:
        """Initialize metrics collection."""
        self._hits = 0
        self._misses = 0
        self._stores = 0
        self._clears = 0
        self._identity_stats: dict[str, dict[str, int]] = {}
        self._lock = threading.Lock()

    def _bump(self, context: dict[str, Any], counter: str) -> None:
        identity = context.get("identity", "<unknown>")
        stats = self._identity_stats.setdefault(identity, {"hits": 0, "misses": 0, "stores": 0})
        stats[counter] += 1

    def on_hit(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        with self._lock:
            self._hits += 1
            self._bump(context, "hits")

    def on_miss(self, key: Any, context: dict[str, Any]) -> None:
        with self._lock:
            self._misses += 1
            self._bump(context, "misses")

    def on_store(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        with self._lock:
            self._stores += 1
            self._bump(context, "stores")

    def on_clear(self, count: int, context: dict[str, Any]) -> None:
        with self._lock:
            self._clears += count

    @property
    def hits(self) -> int:
        """Total hit count."""
        return self._hits

    @property
    def misses(self) -> int:
        """Total miss count."""
        return self._misses

    @property
    def stores(self) -> int:
        """Total number of stored results."""
        return self._stores

    @property
    def clears(self) -> int:
        """Total number of stores cleared."""
        return self._clears

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that hit."""
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return self._hits / total

    def get_identity_stats(self, identity: str) -> dict[str, int]:
        """Get counts for one identity (as rendered in hook contexts)."""
        with self._lock:
            return dict(self._identity_stats.get(identity, {"hits": 0, "misses": 0, "stores": 0}))

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._stores = 0
            self._clears = 0
            self._identity_stats.clear()


class CompositeMemoHook:
    """Fan events out to several hooks.

    A failing hook never interrupts a memoized call or the other hooks.
    """

    def __init__(self, hooks: Sequence[MemoHook] | None = None) -> None:
        self._hooks = list(hooks or ())

    @property
    def hooks(self) -> list[MemoHook]:
        return list(self._hooks)

    def add_hook(self, hook: MemoHook) -> None:
        """Add a hook."""
        self._hooks.append(hook)

    def remove_hook(self, hook: MemoHook) -> None:
        """Remove a hook."""
        if hook in self._hooks:
            self._hooks.remove(hook)

    def __bool__(self) -> bool:
        return bool(self._hooks)

    def on_hit(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        for hook in self._hooks:
            with contextlib.suppress(Exception):
                hook.on_hit(key, value, context)

    def on_miss(self, key: Any, context: dict[str, Any]) -> None:
        for hook in self._hooks:
            with contextlib.suppress(Exception):
                hook.on_miss(key, context)

    def on_store(self, key: Any, value: Any, context: dict[str, Any]) -> None:
        for hook in self._hooks:
            with contextlib.suppress(Exception):
                hook.on_store(key, value, context)

    def on_clear(self, count: int, context: dict[str, Any]) -> None:
        for hook in self._hooks:
            with contextlib.suppress(Exception):
                hook.on_clear(count, context)
