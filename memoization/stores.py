"""Cache stores and store kinds.

A store is any key/value container offering ``get``, an atomic
insert-if-absent ``setdefault`` and ``clear``. Built-in ``dict`` qualifies,
as does any ``MutableMapping``; this module adds two purpose-built stores:

- IdentityStore: the default. Unbounded; immutable scalars and tuples are
  compared by value, every other argument by object identity.
- LRUStore: size-bounded with least-recently-used eviction and optional TTL.

A ``StoreKind`` describes which store to build (a type or a zero-argument
factory). Only the registry builds stores from kinds.

Example:
    >>> kind = StoreKind.of(lambda: LRUStore(max_size=4))
    >>> store = kind.create()
    >>> store.setdefault(build_key((1,)), "one")
    'one'
"""

from __future__ import annotations

import threading
import time
from abc import abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Protocol,
    TypeVar,
    runtime_checkable,
)

from memoization.exceptions import ConstructionError
from memoization.keys import CacheKey


if TYPE_CHECKING:
    from collections.abc import Callable, Hashable


K = TypeVar("K")
V = TypeVar("V")


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Store(Protocol):
    """Protocol every cache store satisfies.

    get-or-insert is ``get`` followed, on a miss, by ``setdefault``. The value
    returned by ``setdefault`` is the one the store retains, so concurrent
    writers for one key never leave two different results behind.
    """

    @abstractmethod
    def get(self, key: Any, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        ...

    @abstractmethod
    def setdefault(self, key: Any, value: Any) -> Any:
        """Insert ``value`` unless ``key`` is present; return the retained value."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        """Number of entries."""
        ...


# =============================================================================
# Store Statistics
# =============================================================================


@dataclass(frozen=True, slots=True)
class StoreStats:
    """Store statistics snapshot.

    Attributes:
        size: Current number of entries.
        max_size: Capacity (None for unbounded stores).
        hits: Total lookups that found an entry.
        misses: Total lookups that found nothing.
        evictions: Entries removed by the store's own policy.
    """

    size: int
    max_size: int | None
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that hit (0.0 when there were none)."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    @property
    def miss_rate(self) -> float:
        """Fraction of lookups that missed."""
        total = self.hits + self.misses
        return self.misses / total if total else 0.0


# =============================================================================
# Identity Store
# =============================================================================

_VALUE_TYPES: frozenset[type] = frozenset({
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    frozenset,
    range,
})


def identity_token(value: Any) -> Hashable:
    """Return the token IdentityStore compares ``value`` by.

    Immutable scalars compare by type and value, tuples and cache keys
    element-wise, and anything else by object identity. Floats compare by
    ``float.hex``, so ``0.0`` and ``-0.0`` differ while ``nan`` matches
    itself.
    """
    kind = type(value)
    if kind is float:
        return (float, value.hex())
    if kind is complex:
        return (complex, value.real.hex(), value.imag.hex())
    if kind in _VALUE_TYPES:
        return (kind, value)
    if kind is CacheKey:
        return (CacheKey, identity_token(value.positional), identity_token(value.keywords))
    if isinstance(value, tuple):
        return (kind, tuple(identity_token(item) for item in value))
    return (object, id(value))


class IdentityStore:
    """Unbounded store comparing arguments by identity.

    Mutable arguments are never hashed, so lists and dicts can be passed to
    memoized functions; two equal but distinct lists are different keys. The
    store holds a reference to each key so an object id cannot be recycled
    while its entry exists.

    Example:
        >>> store = IdentityStore()
        >>> data = [1, 2]
        >>> store.setdefault(build_key((data,)), 3)
        3
        >>> store.get(build_key(([1, 2],))) is None
        True
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, tuple[Any, Any]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        token = identity_token(key)
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            return entry[1]

    def setdefault(self, key: Any, value: Any) -> Any:
        """Insert ``value`` unless ``key`` is present; return the retained value."""
        token = identity_token(key)
        with self._lock:
            entry = self._entries.get(token)
            if entry is not None:
                return entry[1]
            self._entries[token] = (key, value)
            return value

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[Any]:
        """Return the original keys currently stored."""
        with self._lock:
            return [key for key, _ in self._entries.values()]

    def __contains__(self, key: Any) -> bool:
        token = identity_token(key)
        with self._lock:
            return token in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> StoreStats:
        """Get store statistics."""
        with self._lock:
            return StoreStats(
                size=len(self._entries),
                max_size=None,
                hits=self._hits,
                misses=self._misses,
                evictions=0,
            )


# =============================================================================
# LRU Store
# =============================================================================


@dataclass
class StoreEntry(Generic[V]):
    """Entry of an LRUStore.

    Attributes:
        value: The cached value.
        expires_at: Monotonic expiry timestamp, None for no expiry.
    """

    value: V
    created_at: float = field(default_factory=time.monotonic)
    expires_at: float | None = None

    def is_expired(self) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return time.monotonic() > self.expires_at


class LRUStore(Generic[K, V]):
    """Size-bounded store evicting the least recently used entry.

    Keys are compared by equality, so every argument must be hashable.

    Example:
        >>> store = LRUStore(max_size=2)
        >>> for n in range(3):
        ...     _ = store.setdefault(n, n * n)
        >>> len(store), 0 in store
        (2, False)
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float | None = None,
    ) -> None:
        """Initialize LRU store.

        Args:
            max_size: Maximum number of entries.
            ttl_seconds: Optional time-to-live for entries.

        Raises:
            ValueError: If max_size or ttl_seconds is not positive.
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive if specified")
        self._entries: OrderedDict[K, StoreEntry[V]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        """Maximum number of entries."""
        return self._max_size

    def _live_entry(self, key: K) -> StoreEntry[V] | None:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired():
            del self._entries[key]
            self._evictions += 1
            return None
        return entry

    def get(self, key: K, default: Any = None) -> V | Any:
        """Return the value stored under ``key`` or ``default``."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._misses += 1
                return default

            # Move to end (most recently used)
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def setdefault(self, key: K, value: V) -> V:
        """Insert ``value`` unless ``key`` is present; return the retained value."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self._entries.move_to_end(key)
                return entry.value

            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
                self._evictions += 1

            expires_at = time.monotonic() + self._ttl if self._ttl is not None else None
            self._entries[key] = StoreEntry(value=value, expires_at=expires_at)
            return value

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> StoreStats:
        """Get store statistics."""
        with self._lock:
            return StoreStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )


# =============================================================================
# Store Kinds
# =============================================================================


class StoreKind:
    """Descriptor of which store to build.

    Wraps a type or zero-argument factory. Two kinds are equal when they wrap
    the same factory object, so ``StoreKind.of(dict) == StoreKind.of(dict)``
    while two separately written lambdas are different kinds.

    Attributes:
        factory: Zero-argument callable returning a new store.
        name: Readable name used in logs and errors.
    """

    __slots__ = ("factory", "name")

    def __init__(self, factory: Callable[[], Any], name: str | None = None) -> None:
        if not callable(factory):
            raise TypeError(f"Store factory must be callable, got {type(factory).__name__}")
        self.factory = factory
        self.name = name or getattr(factory, "__qualname__", None) or repr(factory)

    @classmethod
    def of(cls, spec: StoreKind | Callable[[], Any]) -> StoreKind:
        """Coerce a type, factory or existing kind into a StoreKind."""
        if isinstance(spec, StoreKind):
            return spec
        return cls(spec)

    def create(self) -> Store:
        """Build a new store.

        Raises:
            ConstructionError: If the factory raises or returns something
                that is not a store.
        """
        try:
            store = self.factory()
        except Exception as e:
            raise ConstructionError(
                f"Failed to construct store of kind {self.name}",
                store_kind=self.name,
                cause=e,
            ) from e

        if not isinstance(store, Store):
            raise ConstructionError(
                f"Factory for {self.name} returned {type(store).__name__}, which is not a store",
                store_kind=self.name,
            )
        return store

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StoreKind):
            return NotImplemented
        return self.factory is other.factory

    def __hash__(self) -> int:
        return hash((StoreKind, id(self.factory)))

    def __repr__(self) -> str:
        return f"StoreKind({self.name})"


IDENTITY_STORE = StoreKind(IdentityStore, name="identity")
DICT_STORE = StoreKind(dict, name="dict")


def store_kind_for_name(name: str, *, lru_max_size: int = 1000) -> StoreKind:
    """Resolve a configured store name into a StoreKind.

    Args:
        name: 'identity', 'dict' or 'lru'.
        lru_max_size: Capacity used for 'lru'.

    Returns:
        The matching StoreKind. 'identity' and 'dict' return shared module
        constants; 'lru' returns a new kind on every call.

    Raises:
        ValueError: If the name is unknown.
    """
    if name == "identity":
        return IDENTITY_STORE
    if name == "dict":
        return DICT_STORE
    if name == "lru":
        return StoreKind(lambda: LRUStore(max_size=lru_max_size), name=f"lru[{lru_max_size}]")
    raise ValueError(f"Unknown store name: {name!r}")
