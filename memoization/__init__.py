"""Transparent memoization for functions, closures and callable objects.

Repeated calls with equal arguments return the stored result instead of
recomputing it. Cache ownership is picked from the shape of the callable:
plain functions share one cache, closures and callable objects carrying state
own private caches.

Quick Start:
    >>> from memoization import memoize, clear_all
    >>> @memoize
    ... def square(x: int) -> int:
    ...     return x * x
    >>> square(3)
    9
    >>> clear_all()
    1

Stores:
    >>> @memoize(store=dict)            # hash arguments by value
    ... def total(values): ...
    >>> @memoize(store="lru")           # bounded, configured capacity
    ... def lookup(name): ...

Isolated runtime:
    >>> runtime = MemoRuntime(MemoizationConfig(collect_metrics=True))
    >>> @memoize(runtime=runtime)
    ... def cube(x):
    ...     return x ** 3
"""

from memoization.config import (
    MemoizationConfig,
    require_valid_config,
    validate_config,
)
from memoization.decorators import BoundMemoizedMethod, MemoizedFunction, memoize
from memoization.engine import MemoEngine, resolve_result_type, result_type_of
from memoization.exceptions import (
    ConfigurationError,
    ConstructionError,
    InvalidConfigValueError,
    MemoizationError,
    MissingConfigError,
    TypeConformanceError,
)
from memoization.hooks import (
    CompositeMemoHook,
    LoggingMemoHook,
    MemoHook,
    MetricsMemoHook,
)
from memoization.identity import (
    CallableIdentity,
    CallableShape,
    IdentityKind,
    IdentityOwner,
    SharedToken,
    classify,
    describe_callable,
    identity_of,
)
from memoization.invalidation import InvalidationService
from memoization.keys import ArgumentResolver, CacheKey, build_key
from memoization.logging import configure_logging, get_logger
from memoization.registry import StoreRegistry
from memoization.runtime import (
    MemoRuntime,
    clear_all,
    clear_for,
    clear_for_category,
    get_default_runtime,
    set_default_runtime,
)
from memoization.stores import (
    DICT_STORE,
    IDENTITY_STORE,
    IdentityStore,
    LRUStore,
    Store,
    StoreKind,
    StoreStats,
    store_kind_for_name,
)


__all__ = [
    # Front end
    "memoize",
    "MemoizedFunction",
    "BoundMemoizedMethod",
    # Runtime
    "MemoRuntime",
    "get_default_runtime",
    "set_default_runtime",
    "clear_for",
    "clear_for_category",
    "clear_all",
    # Core
    "MemoEngine",
    "InvalidationService",
    "StoreRegistry",
    "resolve_result_type",
    "result_type_of",
    # Identity
    "IdentityKind",
    "CallableShape",
    "CallableIdentity",
    "SharedToken",
    "IdentityOwner",
    "classify",
    "describe_callable",
    "identity_of",
    # Keys
    "CacheKey",
    "ArgumentResolver",
    "build_key",
    # Stores
    "Store",
    "StoreKind",
    "StoreStats",
    "IdentityStore",
    "LRUStore",
    "IDENTITY_STORE",
    "DICT_STORE",
    "store_kind_for_name",
    # Hooks
    "MemoHook",
    "LoggingMemoHook",
    "MetricsMemoHook",
    "CompositeMemoHook",
    # Configuration
    "MemoizationConfig",
    "validate_config",
    "require_valid_config",
    # Logging
    "get_logger",
    "configure_logging",
    # Exceptions
    "MemoizationError",
    "ConfigurationError",
    "InvalidConfigValueError",
    "MissingConfigError",
    "ConstructionError",
    "TypeConformanceError",
]

__version__ = "0.1.0"
