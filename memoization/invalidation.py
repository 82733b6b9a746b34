"""Cache invalidation by identity, by category, or globally.

Invalidation empties stores; it never removes them from the registry, so a
cleared store stays the one later calls for that identity use.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from memoization.identity import CallableIdentity, IdentityKind, IdentityOwner, identity_of
from memoization.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from memoization.hooks import MemoHook
    from memoization.registry import StoreRegistry
    from memoization.stores import Store


logger = get_logger(__name__)


def _owned_by_object(target: Any) -> Callable[[CallableIdentity], bool]:
    def predicate(identity: CallableIdentity) -> bool:
        return identity.kind is IdentityKind.INSTANCE and identity.token is target

    return predicate


class InvalidationService:
    """Clears the stores of a registry.

    Args:
        registry: Registry whose stores are cleared.
        hook: Optional hook notified after each invalidation.
    """

    def __init__(self, registry: StoreRegistry, hook: MemoHook | None = None) -> None:
        self._registry = registry
        self._hook = hook

    def _clear(self, stores: Iterable[Store], scope: str, target: str | None) -> int:
        count = 0
        for store in stores:
            store.clear()
            count += 1

        logger.info("Stores cleared", scope=scope, target=target, stores=count)
        if self._hook is not None:
            self._hook.on_clear(count, {"scope": scope, "target": target})
        return count

    def clear_for(self, target: Any) -> int:
        """Clear every store belonging to one callable.

        Args:
            target: A ``CallableIdentity`` (matched exactly), a memoized
                wrapper or bound method (matched through ``owns_identity``),
                a plain function (its shared or instance identity), or an
                object whose memoized methods should all be cleared.

        Returns:
            Number of stores cleared.
        """
        if isinstance(target, CallableIdentity):
            stores = self._registry.stores_for(target)
        elif isinstance(target, IdentityOwner):
            stores = self._registry.select(target.owns_identity)
        elif callable(target) and (identity := identity_of(target)).is_shared:
            stores = self._registry.stores_for(identity)
        else:
            stores = self._registry.select(_owned_by_object(target))
        return self._clear(stores, "identity", repr(target))

    def clear_for_category(self, category: type | tuple[type, ...]) -> int:
        """Clear the stores of every identity whose token is a ``category`` instance.

        Args:
            category: A type or tuple of types.

        Returns:
            Number of stores cleared.

        Raises:
            TypeError: If ``category`` is not a type or tuple of types.
        """
        if not isinstance(category, (type, tuple)):
            raise TypeError(
                f"category must be a type or tuple of types, got {type(category).__name__}"
            )

        stores = self._registry.select(lambda identity: identity.belongs_to(category))
        return self._clear(stores, "category", repr(category))

    def clear_all(self) -> int:
        """Clear every store in the registry.

        Returns:
            Number of stores cleared.
        """
        return self._clear(self._registry.all_stores(), "all", None)
