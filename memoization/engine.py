"""Memoized invocation engine.

The engine performs get-or-compute for one call: find the store owned by the
call's identity, return the stored value on a hit, otherwise run the
computation and store its result. Every returned value, stored or fresh, is
checked against the result type fixed when the memoized callable was defined.

Example:
    >>> engine = MemoEngine(StoreRegistry())
    >>> identity = CallableIdentity.shared(SharedToken("app", "square"))
    >>> engine.get_or_compute(identity, IDENTITY_STORE, build_key((3,)), lambda: 9, (int,))
    9
"""

from __future__ import annotations

import types
import typing
from typing import TYPE_CHECKING, Any, TypeVar

from memoization.exceptions import TypeConformanceError


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from memoization.hooks import MemoHook
    from memoization.identity import CallableIdentity
    from memoization.registry import StoreRegistry
    from memoization.stores import Store, StoreKind


T = TypeVar("T")

_MISSING = object()

_NUMERIC_TOWER: dict[type, tuple[type, ...]] = {
    float: (float, int),
    complex: (complex, float, int),
}


# =============================================================================
# Result Types
# =============================================================================


def resolve_result_type(annotation: Any) -> tuple[type, ...] | None:
    """Map a return annotation to the runtime classes a result must match.

    Unions contribute each member, parametrized generics their origin class
    and ``None`` its own type. ``float`` also accepts ``int`` and ``complex``
    accepts both, following the numeric promotions of type checkers. ``Any``,
    type variables, string forward references, TypedDicts, protocols that
    are not runtime checkable and other annotations with no usable runtime
    class disable the check.

    Args:
        annotation: The return annotation.

    Returns:
        Tuple of accepted classes, or None when no check applies.

    Example:
        >>> resolve_result_type(int | None)
        (<class 'int'>, <class 'NoneType'>)
        >>> resolve_result_type(list[int])
        (<class 'list'>,)
    """
    if annotation is None or annotation is type(None):
        return (type(None),)
    if annotation is Any or isinstance(annotation, (TypeVar, str, typing.ForwardRef)):
        return None

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        accepted: list[type] = []
        for member in typing.get_args(annotation):
            resolved = resolve_result_type(member)
            if resolved is None:
                return None
            accepted.extend(t for t in resolved if t not in accepted)
        return tuple(accepted)
    if origin is typing.Annotated:
        return resolve_result_type(typing.get_args(annotation)[0])
    if isinstance(origin, type):
        return _checkable((origin,))
    if isinstance(annotation, type):
        return _checkable(_NUMERIC_TOWER.get(annotation, (annotation,)))
    return None


def _checkable(accepted: tuple[type, ...]) -> tuple[type, ...] | None:
    # TypedDicts and non-runtime protocols refuse isinstance checks.
    try:
        isinstance(None, accepted)
    except TypeError:
        return None
    return accepted


def result_type_of(func: Callable[..., Any]) -> tuple[type, ...] | None:
    """Read and resolve the return annotation of ``func``.

    Returns None when the function has no return annotation or when the
    annotation cannot be evaluated.
    """
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError, AttributeError):
        return None
    if "return" not in hints:
        return None
    return resolve_result_type(hints["return"])


# =============================================================================
# Engine
# =============================================================================


class MemoEngine:
    """Get-or-compute against the stores of a registry.

    No lock is held while a computation runs, so memoized functions may call
    themselves recursively. Concurrent misses on one key may compute twice;
    the store's ``setdefault`` keeps the first result and both callers get it.

    Args:
        registry: Registry owning the stores.
        hook: Optional hook notified of hits, misses and stores.
        check_result_type: Enforce declared result types.
    """

    def __init__(
        self,
        registry: StoreRegistry,
        hook: MemoHook | None = None,
        check_result_type: bool = True,
    ) -> None:
        self._registry = registry
        self._hook = hook
        self._check_result_type = check_result_type

    @property
    def registry(self) -> StoreRegistry:
        return self._registry

    @property
    def check_result_type(self) -> bool:
        return self._check_result_type

    def _context(self, identity: CallableIdentity, store_kind: StoreKind) -> dict[str, Any]:
        return {"identity": repr(identity), "store_kind": store_kind.name}

    def _conform(
        self,
        value: T,
        result_type: tuple[type, ...] | None,
        identity: CallableIdentity,
    ) -> T:
        if result_type is None or not self._check_result_type:
            return value
        if not isinstance(value, result_type):
            raise TypeConformanceError(
                expected=result_type,
                actual=type(value),
                identity=repr(identity),
            )
        return value

    def _lookup(
        self,
        identity: CallableIdentity,
        store_kind: StoreKind,
        key: Any,
        store: Store | None,
    ) -> tuple[Store, Any]:
        if store is None:
            store = self._registry.get_or_create_store(identity, store_kind)
        value = store.get(key, _MISSING)
        if self._hook is not None:
            if value is _MISSING:
                self._hook.on_miss(key, self._context(identity, store_kind))
            else:
                self._hook.on_hit(key, value, self._context(identity, store_kind))
        return store, value

    def _insert(
        self,
        identity: CallableIdentity,
        store_kind: StoreKind,
        store: Store,
        key: Any,
        value: Any,
    ) -> Any:
        retained = store.setdefault(key, value)
        if self._hook is not None:
            self._hook.on_store(key, retained, self._context(identity, store_kind))
        return retained

    def get_or_compute(
        self,
        identity: CallableIdentity,
        store_kind: StoreKind,
        key: Any,
        compute: Callable[[], T],
        result_type: tuple[type, ...] | None = None,
        *,
        store: Store | None = None,
    ) -> T:
        """Return the stored result for ``key`` or compute and store it.

        Args:
            identity: Identity owning the store.
            store_kind: Kind of store to use.
            key: Cache key of the call.
            compute: Zero-argument thunk running the wrapped computation.
            result_type: Accepted result classes, None to skip the check.
            store: The already-resolved store for ``(identity, store_kind)``.

        Returns:
            The stored or freshly computed result.

        Raises:
            ConstructionError: If the store cannot be built.
            TypeConformanceError: If the result does not match ``result_type``.
        """
        store, value = self._lookup(identity, store_kind, key, store)
        if value is _MISSING:
            value = self._insert(identity, store_kind, store, key, compute())
        return self._conform(value, result_type, identity)

    async def get_or_compute_async(
        self,
        identity: CallableIdentity,
        store_kind: StoreKind,
        key: Any,
        compute: Callable[[], Awaitable[T]],
        result_type: tuple[type, ...] | None = None,
        *,
        store: Store | None = None,
    ) -> T:
        """Async variant of ``get_or_compute``; the awaited result is stored."""
        store, value = self._lookup(identity, store_kind, key, store)
        if value is _MISSING:
            value = self._insert(identity, store_kind, store, key, await compute())
        return self._conform(value, result_type, identity)
