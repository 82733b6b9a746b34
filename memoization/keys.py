"""Cache key construction.

A call's resolved arguments become one ``CacheKey``: the positional sequence
(variadic tail flattened in) plus the keyword set with every keyword parameter
resolved to its explicit or default value. Keyword pairs are kept sorted by
name so their order never affects key equality.

Example:
    >>> def area(width, height=1, *, unit="m"):
    ...     ...
    >>> resolver = ArgumentResolver(area)
    >>> resolver.key_for((3,), {}) == resolver.key_for((3, 1), {"unit": "m"})
    True
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from operator import itemgetter
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Canonical, hashable encoding of a call's resolved arguments.

    Hashing is deferred to the store using the key, so an argument that cannot
    be hashed surfaces as an error from the store on first use.

    Attributes:
        positional: Positional argument values in call order.
        keywords: ``(name, value)`` pairs sorted by name.
    """

    positional: tuple[Any, ...] = ()
    keywords: tuple[tuple[str, Any], ...] = ()

    def keyword_dict(self) -> dict[str, Any]:
        """Return the keyword set as a dictionary."""
        return dict(self.keywords)

    def __repr__(self) -> str:
        parts = [repr(value) for value in self.positional]
        parts.extend(f"{name}={value!r}" for name, value in self.keywords)
        return f"CacheKey({', '.join(parts)})"


def build_key(
    positional_args: Sequence[Any],
    keyword_args: Mapping[str, Any] | None = None,
) -> CacheKey:
    """Build the cache key for one call.

    Args:
        positional_args: Positional values, variadic tail already collected.
        keyword_args: Keyword values with every keyword parameter resolved.

    Returns:
        The call's CacheKey.
    """
    keywords = tuple(sorted((keyword_args or {}).items(), key=itemgetter(0)))
    return CacheKey(positional=tuple(positional_args), keywords=keywords)


class ArgumentResolver:
    """Resolve raw call arguments against a callable's signature.

    Positional-or-keyword parameters land in the positional sequence whether
    they were passed by position or by name; keyword-only parameters and any
    ``**kwargs`` land in the keyword set. Defaults are applied, so omitting
    an argument and passing its default produce the same key.

    Args:
        func: The callable whose signature is used.
        skip_first: Drop the first bound argument (the instance of a method).
    """

    def __init__(self, func: Callable[..., Any], *, skip_first: bool = False) -> None:
        self._skip_first = skip_first
        try:
            self._signature: inspect.Signature | None = inspect.signature(func)
        except (TypeError, ValueError):
            # Some builtins expose no signature; key on the raw arguments.
            self._signature = None

    @property
    def signature(self) -> inspect.Signature | None:
        """The signature used for binding, if one could be read."""
        return self._signature

    def resolve(
        self,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """Resolve a call into its positional sequence and keyword set.

        Args:
            args: Positional arguments as passed (including the instance
                for methods).
            kwargs: Keyword arguments as passed.

        Returns:
            ``(positional, keywords)`` with defaults applied.

        Raises:
            TypeError: If the arguments do not match the signature.
        """
        if self._signature is None:
            positional, keywords = tuple(args), dict(kwargs)
        else:
            bound = self._signature.bind(*args, **kwargs)
            bound.apply_defaults()
            positional, keywords = bound.args, bound.kwargs

        if self._skip_first:
            positional = positional[1:]
        return positional, keywords

    def key_for(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> CacheKey:
        """Resolve a call and build its key in one step."""
        return build_key(*self.resolve(args, kwargs))
