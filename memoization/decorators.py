"""The ``memoize`` decorator.

This is the front end of the package: it classifies the decorated callable,
resolves each call's arguments into a cache key and hands the call to the
runtime's engine.

Cache ownership follows the shape of what is decorated:

- A plain function shares one cache across every call site.
- A closure gets one cache per execution of its enclosing definition.
- A method gets one cache per instance it is called on, and the instance is
  not part of the key. This includes ``__call__``, so callable objects
  holding state get private caches.

Example:
    >>> @memoize
    ... def fib(n: int) -> int:
    ...     return n if n < 2 else fib(n - 1) + fib(n - 2)
    >>> fib(80)
    23416728348467685
    >>> fib.clear()
    1

    >>> class Scaler:
    ...     def __init__(self, factor):
    ...         self.factor = factor
    ...
    ...     @memoize(store="lru")
    ...     def __call__(self, x):
    ...         return x * self.factor
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING, Any

from memoization.engine import resolve_result_type, result_type_of
from memoization.identity import (
    CallableIdentity,
    IdentityKind,
    SharedToken,
    classify,
    describe_callable,
)
from memoization.keys import ArgumentResolver
from memoization.logging import get_logger
from memoization.runtime import get_default_runtime


if TYPE_CHECKING:
    from collections.abc import Callable

    from memoization.runtime import MemoRuntime
    from memoization.stores import Store, StoreKind


logger = get_logger(__name__)


def _resolve_declared_type(result_type: Any) -> tuple[type, ...] | None:
    if isinstance(result_type, tuple):
        return result_type
    return resolve_result_type(result_type)


class MemoizedFunction:
    """A memoized callable.

    Created by ``memoize``. Calls go through the runtime's engine; the
    wrapper keeps the store for its identity once resolved so later calls
    skip the registry lookup.

    Attributes:
        identity: Identity owning this callable's cache.
        store_kind: Kind of store the cache uses.
        result_type: Classes every result must match (None when unchecked).
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        store: StoreKind | str | Callable[[], Any] | None = None,
        per_instance: bool | None = None,
        result_type: Any = None,
        runtime: MemoRuntime | None = None,
    ) -> None:
        functools.update_wrapper(self, func)
        self._func = func
        self._runtime = runtime if runtime is not None else get_default_runtime()
        self._store_kind = self._runtime.resolve_store_kind(store)
        self._per_instance = per_instance
        self._is_coroutine = inspect.iscoroutinefunction(func)
        if result_type is None:
            self._result_type = result_type_of(func)
        else:
            self._result_type = _resolve_declared_type(result_type)
        self._resolver = ArgumentResolver(func)
        self._method_resolver: ArgumentResolver | None = None
        self._owner: type | None = None
        self._store: Store | None = None

        if per_instance is None:
            kind = classify(describe_callable(func))
        else:
            kind = IdentityKind.INSTANCE if per_instance else IdentityKind.SHARED

        if kind is IdentityKind.SHARED:
            self.identity = CallableIdentity.shared(SharedToken.of(func))
        else:
            self.identity = CallableIdentity.instance(func)

        self._invalidate_previous_definition()
        logger.debug(
            "Memoized callable defined",
            identity=repr(self.identity),
            store_kind=self._store_kind.name,
        )

    def _invalidate_previous_definition(self) -> None:
        identity = self.identity
        if not (identity.is_shared and identity.token.is_top_level):
            return
        if not self._runtime.config.invalidate_on_redefine:
            return
        if identity not in self._runtime.registry:
            return
        count = self._runtime.invalidation.clear_for(identity)
        logger.info("Cleared stores of previous definition", identity=repr(identity), stores=count)

    @property
    def runtime(self) -> MemoRuntime:
        return self._runtime

    @property
    def store_kind(self) -> StoreKind:
        return self._store_kind

    @property
    def result_type(self) -> tuple[type, ...] | None:
        return self._result_type

    @property
    def is_method(self) -> bool:
        """Whether the wrapper was defined in a class body."""
        return self._owner is not None

    def __set_name__(self, owner: type, name: str) -> None:
        self._owner = owner

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return BoundMemoizedMethod(self, obj)

    def _bound_resolver(self) -> ArgumentResolver:
        if self._method_resolver is None:
            self._method_resolver = ArgumentResolver(self._func, skip_first=True)
        return self._method_resolver

    def _resolved_store(self) -> Store:
        if self._store is None:
            registry = self._runtime.registry
            self._store = registry.get_or_create_store(self.identity, self._store_kind)
        return self._store

    def _invoke(
        self,
        identity: CallableIdentity,
        key: Any,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        store: Store | None,
    ) -> Any:
        engine = self._runtime.engine
        if self._is_coroutine:
            return engine.get_or_compute_async(
                identity,
                self._store_kind,
                key,
                lambda: self._func(*args, **kwargs),
                self._result_type,
                store=store,
            )
        return engine.get_or_compute(
            identity,
            self._store_kind,
            key,
            lambda: self._func(*args, **kwargs),
            self._result_type,
            store=store,
        )

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if self._owner is not None and args:
            # Called through the class: the first argument is the instance.
            return BoundMemoizedMethod(self, args[0])(*args[1:], **kwargs)

        key = self._resolver.key_for(args, kwargs)
        return self._invoke(self.identity, key, args, kwargs, self._resolved_store())

    def owns_identity(self, identity: CallableIdentity) -> bool:
        """Whether ``identity`` is this wrapper's, or one of its per-instance method caches."""
        if identity == self.identity:
            return True
        return (
            self._owner is not None
            and identity.kind is IdentityKind.INSTANCE
            and identity.member == self._func.__qualname__
        )

    def stores(self) -> list[Store]:
        """Return the stores currently holding this callable's results."""
        return self._runtime.registry.select(self.owns_identity)

    def clear(self) -> int:
        """Clear this callable's cache, including every per-instance method cache.

        Returns:
            Number of stores cleared.
        """
        return self._runtime.clear_for(self)

    def __repr__(self) -> str:
        name = getattr(self, "__qualname__", type(self._func).__qualname__)
        return f"<memoized {name} {self.identity!r}>"


class BoundMemoizedMethod:
    """A memoized method bound to one instance.

    Unless the method was memoized with ``per_instance=False``, the instance
    owns the cache and is left out of the key.

    The registry holds the instance strongly through the identity of its
    cache, so an instance whose memoized methods were called stays alive
    until the runtime is discarded. Clearing empties the cache but keeps
    the registry entry.
    """

    def __init__(self, memoized: MemoizedFunction, obj: Any) -> None:
        functools.update_wrapper(self, memoized._func, updated=())
        self.__func__ = memoized
        self.__self__ = obj
        if memoized._per_instance is False:
            self.identity = memoized.identity
            self._resolver = memoized._resolver
        else:
            self.identity = CallableIdentity.instance(obj, member=memoized._func.__qualname__)
            self._resolver = memoized._bound_resolver()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        memoized = self.__func__
        full_args = (self.__self__, *args)
        key = self._resolver.key_for(full_args, kwargs)
        store = memoized._resolved_store() if self.identity is memoized.identity else None
        return memoized._invoke(self.identity, key, full_args, kwargs, store)

    def owns_identity(self, identity: CallableIdentity) -> bool:
        """Whether ``identity`` is the identity of this bound method."""
        return identity == self.identity

    def stores(self) -> list[Store]:
        """Return the stores currently holding this instance's results."""
        return self.__func__.runtime.registry.stores_for(self.identity)

    def clear(self) -> int:
        """Clear this instance's cache for the method.

        Returns:
            Number of stores cleared.
        """
        return self.__func__.runtime.clear_for(self.identity)

    def __repr__(self) -> str:
        return f"<bound memoized {self.__qualname__} of {self.__self__!r}>"


def memoize(
    func: Callable[..., Any] | None = None,
    *,
    store: StoreKind | str | Callable[[], Any] | None = None,
    per_instance: bool | None = None,
    result_type: Any = None,
    runtime: MemoRuntime | None = None,
) -> Any:
    """Memoize a function, closure, method or callable object.

    Usable bare (``@memoize``) or with options (``@memoize(store=dict)``).

    Args:
        func: The callable to memoize.
        store: Store to cache in: a configured name ('identity', 'dict',
            'lru'), a store type, a zero-argument factory or a StoreKind.
            The runtime's default store when omitted.
        per_instance: Force instance (True) or shared (False) cache
            ownership instead of deriving it from the callable.
        result_type: Type, tuple of types or annotation every result must
            match. Taken from the return annotation when omitted.
        runtime: Runtime to use instead of the process runtime.

    Returns:
        A ``MemoizedFunction``, or a decorator producing one.

    Example:
        >>> @memoize(store=dict)
        ... def total(values: tuple[int, ...]) -> int:
        ...     return sum(values)
    """

    def decorator(f: Callable[..., Any]) -> MemoizedFunction:
        return MemoizedFunction(
            f,
            store=store,
            per_instance=per_instance,
            result_type=result_type,
            runtime=runtime,
        )

    if func is not None:
        return decorator(func)
    return decorator
