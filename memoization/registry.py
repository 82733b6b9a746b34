"""Registry owning every memoization store.

The registry maps ``(callable identity, store kind)`` to exactly one store,
built lazily on first request. It is indexed by identity first, so looking up
or clearing one identity never touches the stores of another.

Example:
    >>> registry = StoreRegistry()
    >>> identity = CallableIdentity.shared(SharedToken("app", "fib"))
    >>> store = registry.get_or_create_store(identity, IDENTITY_STORE)
    >>> registry.get_or_create_store(identity, IDENTITY_STORE) is store
    True
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from memoization.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable

    from memoization.identity import CallableIdentity
    from memoization.stores import Store, StoreKind, StoreStats


logger = get_logger(__name__)


class StoreRegistry:
    """Table of stores keyed by callable identity and store kind.

    For a fixed pair at most one store ever exists: the first request builds
    it, later requests return the same object. Clearing empties stores but
    never removes them from the registry.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._stores: dict[CallableIdentity, dict[StoreKind, Store]] = {}
        self._lock = threading.RLock()

    def get_or_create_store(self, identity: CallableIdentity, store_kind: StoreKind) -> Store:
        """Return the store for ``(identity, store_kind)``, building it if needed.

        Args:
            identity: Callable identity owning the store.
            store_kind: Kind of store to build on first request.

        Returns:
            The canonical store for the pair.

        Raises:
            ConstructionError: If the store kind's factory fails.
        """
        with self._lock:
            by_kind = self._stores.get(identity)
            if by_kind is not None:
                store = by_kind.get(store_kind)
                if store is not None:
                    return store

            store = store_kind.create()
            self._stores.setdefault(identity, {})[store_kind] = store

        logger.debug("Store created", identity=repr(identity), store_kind=store_kind.name)
        return store

    def get_store(self, identity: CallableIdentity, store_kind: StoreKind) -> Store | None:
        """Return the existing store for a pair without building one."""
        with self._lock:
            return self._stores.get(identity, {}).get(store_kind)

    def stores_for(self, identity: CallableIdentity) -> list[Store]:
        """Return every store owned by ``identity``, one per store kind."""
        with self._lock:
            return list(self._stores.get(identity, {}).values())

    def select(self, predicate: Callable[[CallableIdentity], bool]) -> list[Store]:
        """Return the stores of every identity matching ``predicate``."""
        with self._lock:
            return [
                store
                for identity, by_kind in self._stores.items()
                if predicate(identity)
                for store in by_kind.values()
            ]

    def identities(self) -> list[CallableIdentity]:
        """Return every identity that owns at least one store."""
        with self._lock:
            return list(self._stores)

    def entries(self) -> list[tuple[CallableIdentity, StoreKind, Store]]:
        """Return every registry entry."""
        with self._lock:
            return [
                (identity, kind, store)
                for identity, by_kind in self._stores.items()
                for kind, store in by_kind.items()
            ]

    def all_stores(self) -> list[Store]:
        """Return every store in the registry."""
        with self._lock:
            return [store for by_kind in self._stores.values() for store in by_kind.values()]

    def get_all_stats(self) -> dict[str, StoreStats]:
        """Return statistics of every store that reports them.

        Returns:
            Mapping of ``"<identity> [<store kind>]"`` to stats.
        """
        result: dict[str, Any] = {}
        for identity, kind, store in self.entries():
            get_stats = getattr(store, "get_stats", None)
            if get_stats is not None:
                result[f"{identity!r} [{kind.name}]"] = get_stats()
        return result

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._stores

    def __len__(self) -> int:
        with self._lock:
            return sum(len(by_kind) for by_kind in self._stores.values())
