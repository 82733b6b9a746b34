"""Memoization runtime.

A ``MemoRuntime`` owns everything a memoized callable needs: the store
registry, the invocation engine, the invalidation service and the hooks
enabled by configuration. Memoized callables use the process runtime unless
given one explicitly, which keeps tests isolated from each other.

Example:
    >>> runtime = MemoRuntime(MemoizationConfig(collect_metrics=True))
    >>> @memoize(runtime=runtime)
    ... def square(x):
    ...     return x * x
    >>> square(3), square(3)
    (9, 9)
    >>> runtime.metrics.hits
    1
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from memoization.config import DEFAULT_ENV_PREFIX, MemoizationConfig, require_valid_config
from memoization.engine import MemoEngine
from memoization.hooks import CompositeMemoHook, LoggingMemoHook, MetricsMemoHook
from memoization.invalidation import InvalidationService
from memoization.logging import get_logger
from memoization.registry import StoreRegistry
from memoization.stores import StoreKind, store_kind_for_name


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from memoization.hooks import MemoHook


logger = get_logger(__name__)


class MemoRuntime:
    """Owner of one registry and the services working on it.

    Args:
        config: Runtime configuration (defaults when omitted).
        registry: Registry to use (a new one when omitted).
        hooks: Additional hooks notified of cache events.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """

    def __init__(
        self,
        config: MemoizationConfig | None = None,
        *,
        registry: StoreRegistry | None = None,
        hooks: Sequence[MemoHook] | None = None,
    ) -> None:
        self._config = config or MemoizationConfig()
        require_valid_config(self._config)

        self._registry = registry if registry is not None else StoreRegistry()
        self._hook = CompositeMemoHook(hooks)
        self._metrics: MetricsMemoHook | None = None
        if self._config.log_cache_events:
            self._hook.add_hook(LoggingMemoHook())
        if self._config.collect_metrics:
            self._metrics = MetricsMemoHook()
            self._hook.add_hook(self._metrics)

        hook = self._hook if self._hook else None
        self._engine = MemoEngine(
            self._registry,
            hook=hook,
            check_result_type=self._config.check_result_type,
        )
        self._invalidation = InvalidationService(self._registry, hook=hook)

        self._named_kinds: dict[str, StoreKind] = {}
        self._kinds_lock = threading.Lock()
        self._default_store_kind = self.store_kind_named(self._config.default_store)

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_ENV_PREFIX, **kwargs: Any) -> MemoRuntime:
        """Create a runtime configured from environment variables."""
        return cls(MemoizationConfig.from_env(prefix), **kwargs)

    @property
    def config(self) -> MemoizationConfig:
        return self._config

    @property
    def registry(self) -> StoreRegistry:
        return self._registry

    @property
    def engine(self) -> MemoEngine:
        return self._engine

    @property
    def invalidation(self) -> InvalidationService:
        return self._invalidation

    @property
    def metrics(self) -> MetricsMemoHook | None:
        """Metrics hook, present when ``collect_metrics`` is enabled."""
        return self._metrics

    @property
    def default_store_kind(self) -> StoreKind:
        return self._default_store_kind

    def store_kind_named(self, name: str) -> StoreKind:
        """Return the store kind for a configured name.

        The same kind object is returned for a name on every call, so all
        definitions naming it share one registry entry per identity.

        Raises:
            ValueError: If the name is unknown.
        """
        with self._kinds_lock:
            kind = self._named_kinds.get(name)
            if kind is None:
                kind = store_kind_for_name(name, lru_max_size=self._config.lru_max_size)
                self._named_kinds[name] = kind
            return kind

    def resolve_store_kind(self, spec: StoreKind | str | Callable[[], Any] | None) -> StoreKind:
        """Coerce a store specification into a StoreKind.

        Args:
            spec: None for the default kind, a configured name, a StoreKind,
                a store type or a zero-argument factory.
        """
        if spec is None:
            return self._default_store_kind
        if isinstance(spec, str):
            return self.store_kind_named(spec)
        return StoreKind.of(spec)

    def clear_for(self, target: Any) -> int:
        """Clear the stores of one callable. See ``InvalidationService.clear_for``."""
        return self._invalidation.clear_for(target)

    def clear_for_category(self, category: type | tuple[type, ...]) -> int:
        """Clear the stores of every identity belonging to ``category``."""
        return self._invalidation.clear_for_category(category)

    def clear_all(self) -> int:
        """Clear every store of this runtime."""
        return self._invalidation.clear_all()


# =============================================================================
# Process Runtime
# =============================================================================

_default_runtime: MemoRuntime | None = None
_default_lock = threading.Lock()


def get_default_runtime() -> MemoRuntime:
    """Return the process runtime, creating it from the environment on first use."""
    global _default_runtime
    if _default_runtime is None:
        with _default_lock:
            if _default_runtime is None:
                _default_runtime = MemoRuntime.from_env()
                logger.debug("Default runtime created", **_default_runtime.config.to_dict())
    return _default_runtime


def set_default_runtime(runtime: MemoRuntime | None) -> MemoRuntime | None:
    """Replace the process runtime and return the previous one.

    Passing None makes the next ``get_default_runtime`` call build a fresh
    runtime. Memoized callables already bound to the previous runtime keep
    using it.
    """
    global _default_runtime
    with _default_lock:
        previous, _default_runtime = _default_runtime, runtime
    return previous


def clear_for(target: Any) -> int:
    """Clear the stores of one callable in the process runtime."""
    return get_default_runtime().clear_for(target)


def clear_for_category(category: type | tuple[type, ...]) -> int:
    """Clear every identity of ``category`` in the process runtime."""
    return get_default_runtime().clear_for_category(category)


def clear_all() -> int:
    """Clear every store of the process runtime."""
    return get_default_runtime().clear_all()
