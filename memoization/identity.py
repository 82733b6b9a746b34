"""Callable identities and their classification.

Every memoized call belongs to exactly one callable identity, which decides
which stores it reads and writes:

- Shared identity: owned by a definition. Every invocation of a plain
  function, whichever call site it comes from, shares one cache.
- Instance identity: owned by one concrete callable value. Closures and
  callable objects carry private state, so each instance gets its own cache.

Classification is an explicit step over a ``CallableShape`` supplied by the
front end; ``describe_callable`` derives that shape for ordinary Python
callables.
"""

from __future__ import annotations

import inspect
import types
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Protocol, runtime_checkable


class IdentityKind(Enum):
    """Cache ownership granularity.

    Attributes:
        SHARED: One cache per definition.
        INSTANCE: One cache per concrete callable value.
    """

    SHARED = auto()
    INSTANCE = auto()


@dataclass(frozen=True, slots=True)
class CallableShape:
    """Declared shape of a callable.

    Attributes:
        is_function: The callable is a function value rather than an object
            with call behavior.
        captures_state: The function carries attached state (closed-over
            variables or a bound receiver).
    """

    is_function: bool
    captures_state: bool = False


def classify(shape: CallableShape) -> IdentityKind:
    """Classify a callable shape.

    Non-function callables are always per-instance; functions are
    per-instance exactly when they capture state.
    """
    if not shape.is_function or shape.captures_state:
        return IdentityKind.INSTANCE
    return IdentityKind.SHARED


def describe_callable(value: Any) -> CallableShape:
    """Derive the shape of a Python callable.

    A plain function captures state when its code has free variables. The
    implicit ``__class__`` cell created for ``super()`` does not count.

    Raises:
        TypeError: If ``value`` is not callable.
    """
    if not callable(value):
        raise TypeError(f"{type(value).__name__} object is not callable")

    if isinstance(value, types.FunctionType):
        free = [name for name in value.__code__.co_freevars if name != "__class__"]
        return CallableShape(is_function=True, captures_state=bool(free))
    if isinstance(value, types.MethodType):
        return CallableShape(is_function=True, captures_state=True)
    if isinstance(value, types.BuiltinFunctionType):
        receiver = getattr(value, "__self__", None)
        bound = receiver is not None and not inspect.ismodule(receiver)
        return CallableShape(is_function=True, captures_state=bound)
    return CallableShape(is_function=False)


@dataclass(frozen=True, slots=True)
class SharedToken:
    """Identity token of a definition.

    Redefining a top-level function produces the same token, which is what
    lets a redefinition invalidate the caches filled by the old code.
    Anonymous functions all share the qualified name ``<lambda>``, so their
    tokens also carry the code object.
    """

    module: str
    qualname: str
    code: Any = field(default=None, repr=False)

    @classmethod
    def of(cls, func: Any) -> SharedToken:
        """Build the token for a function or other named definition."""
        module = getattr(func, "__module__", None) or "<unknown>"
        qualname = getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))
        code = None
        if qualname.rpartition(".")[2] == "<lambda>":
            code = getattr(func, "__code__", None)
        return cls(module=module, qualname=qualname, code=code)

    @property
    def is_top_level(self) -> bool:
        """Whether the definition sits at module level (not inside a function)."""
        return "<locals>" not in self.qualname

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.module}.{self.qualname}:{self.code.co_firstlineno}"
        return f"{self.module}.{self.qualname}"


class CallableIdentity:
    """Which cache a call belongs to.

    Shared identities compare by token equality. Instance identities compare
    by object identity of the token, never through the object's own
    ``__eq__``/``__hash__``, so unhashable callable objects work. ``member``
    separates several memoized methods of the same object.

    Example:
        >>> CallableIdentity.shared(SharedToken("app", "fib")) == CallableIdentity.shared(
        ...     SharedToken("app", "fib")
        ... )
        True
    """

    __slots__ = ("kind", "member", "token")

    def __init__(self, kind: IdentityKind, token: Any, member: str | None = None) -> None:
        self.kind = kind
        self.token = token
        self.member = member

    @classmethod
    def shared(cls, token: Any) -> CallableIdentity:
        """Identity owned by a definition."""
        return cls(IdentityKind.SHARED, token)

    @classmethod
    def instance(cls, value: Any, member: str | None = None) -> CallableIdentity:
        """Identity owned by one concrete value."""
        return cls(IdentityKind.INSTANCE, value, member)

    @property
    def is_shared(self) -> bool:
        return self.kind is IdentityKind.SHARED

    def belongs_to(self, category: type | tuple[type, ...]) -> bool:
        """Whether the identity's token is an instance of ``category``."""
        return isinstance(self.token, category)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallableIdentity):
            return NotImplemented
        if self.kind is not other.kind or self.member != other.member:
            return False
        if self.kind is IdentityKind.SHARED:
            return self.token == other.token
        return self.token is other.token

    def __hash__(self) -> int:
        if self.kind is IdentityKind.SHARED:
            return hash((self.kind, self.token, self.member))
        return hash((self.kind, id(self.token), self.member))

    def __repr__(self) -> str:
        if self.kind is IdentityKind.SHARED:
            return f"Shared({self.token})"
        label = f"{type(self.token).__qualname__}@{id(self.token):#x}"
        if self.member:
            label = f"{label}.{self.member.rsplit('.', 1)[-1]}"
        return f"Instance({label})"


def identity_of(value: Any) -> CallableIdentity:
    """Derive the callable identity of an arbitrary callable value.

    Memoized wrappers expose their own identity; anything else is classified
    from its shape.
    """
    identity = getattr(value, "identity", None)
    if isinstance(identity, CallableIdentity):
        return identity
    if classify(describe_callable(value)) is IdentityKind.SHARED:
        return CallableIdentity.shared(SharedToken.of(value))
    return CallableIdentity.instance(value)


@runtime_checkable
class IdentityOwner(Protocol):
    """An object able to tell which identities belong to it.

    Memoized wrappers implement this so invalidation can target them.
    """

    def owns_identity(self, identity: CallableIdentity) -> bool:
        """Whether ``identity`` belongs to this owner."""
        ...
