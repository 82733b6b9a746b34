"""Tests for callable classification and identities."""

from __future__ import annotations

import functools

import pytest

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


def top_level(x):
    return x


double = lambda x: x * 2  # noqa: E731
half = lambda x: x / 2  # noqa: E731


def make_closure(offset):
    def add(x):
        return x + offset

    return add


class Adder:
    def __init__(self, offset):
        self.offset = offset

    def __call__(self, x):
        return x + self.offset

    def method(self, x):
        return x

    def uses_super(self):
        return super().__repr__()


class Unhashable:
    __hash__ = None  # type: ignore[assignment]

    def __eq__(self, other: object) -> bool:
        return True

    def __call__(self) -> int:
        return 1


class TestClassify:
    """Tests for the classification rule."""

    @pytest.mark.parametrize(
        ("shape", "expected"),
        [
            (CallableShape(is_function=True, captures_state=False), IdentityKind.SHARED),
            (CallableShape(is_function=True, captures_state=True), IdentityKind.INSTANCE),
            (CallableShape(is_function=False, captures_state=False), IdentityKind.INSTANCE),
            (CallableShape(is_function=False, captures_state=True), IdentityKind.INSTANCE),
        ],
    )
    def test_rule(self, shape: CallableShape, expected: IdentityKind) -> None:
        """Test the rule over every shape."""
        assert classify(shape) is expected


class TestDescribeCallable:
    """Tests for describe_callable."""

    def test_plain_function(self) -> None:
        """Test a top-level function captures nothing."""
        assert describe_callable(top_level) == CallableShape(is_function=True, captures_state=False)

    def test_closure(self) -> None:
        """Test a closure captures state."""
        assert describe_callable(make_closure(1)).captures_state

    def test_super_cell_is_not_state(self) -> None:
        """Test the implicit __class__ cell does not count as captured state."""
        assert not describe_callable(Adder.uses_super).captures_state

    def test_bound_method(self) -> None:
        """Test bound methods capture their receiver."""
        assert describe_callable(Adder(1).method).captures_state

    def test_builtins(self) -> None:
        """Test module builtins are plain and bound builtins capture."""
        assert not describe_callable(len).captures_state
        assert describe_callable([].append).captures_state

    @pytest.mark.parametrize("value", [Adder(1), functools.partial(top_level, 1), Adder])
    def test_non_functions(self, value: object) -> None:
        """Test callable objects, partials and classes are non-functions."""
        assert not describe_callable(value).is_function

    def test_not_callable(self) -> None:
        """Test non-callables are rejected."""
        with pytest.raises(TypeError, match="not callable"):
            describe_callable(42)


class TestSharedToken:
    """Tests for SharedToken."""

    def test_same_definition_same_token(self) -> None:
        """Test redefinitions of a top-level function share a token."""
        first = SharedToken.of(top_level)

        def top_level_again(x):
            return x

        top_level_again.__qualname__ = "top_level"
        top_level_again.__module__ = top_level.__module__
        assert SharedToken.of(top_level_again) == first

    def test_top_level(self) -> None:
        """Test nested definitions are not top level."""
        assert SharedToken.of(top_level).is_top_level
        assert not SharedToken.of(make_closure(1)).is_top_level

    def test_str(self) -> None:
        """Test the dotted form."""
        assert str(SharedToken("app", "fib")) == "app.fib"

    def test_lambdas_carry_code(self) -> None:
        """Test anonymous functions with one qualified name get distinct tokens."""
        assert double.__qualname__ == half.__qualname__
        assert SharedToken.of(double) != SharedToken.of(half)
        assert SharedToken.of(double) == SharedToken.of(double)
        assert SharedToken.of(double).code is double.__code__
        assert SharedToken.of(top_level).code is None

    def test_lambda_str_has_line(self) -> None:
        """Test lambda tokens render with their first line."""
        line = double.__code__.co_firstlineno
        assert str(SharedToken.of(double)) == f"{__name__}.<lambda>:{line}"

    def test_lambda_identities(self) -> None:
        """Test identity_of keeps lambdas apart."""
        assert identity_of(double) != identity_of(half)
        assert identity_of(double).is_shared


class TestCallableIdentity:
    """Tests for CallableIdentity."""

    def test_shared_equality(self) -> None:
        """Test shared identities compare by token."""
        a = CallableIdentity.shared(SharedToken("app", "f"))
        b = CallableIdentity.shared(SharedToken("app", "f"))
        assert a == b
        assert hash(a) == hash(b)

    def test_instance_equality_by_object(self) -> None:
        """Test instance identities compare by object identity."""
        one, two = Adder(1), Adder(1)
        assert CallableIdentity.instance(one) == CallableIdentity.instance(one)
        assert CallableIdentity.instance(one) != CallableIdentity.instance(two)

    def test_unhashable_token(self) -> None:
        """Test unhashable callables still make usable identities."""
        value = Unhashable()
        identity = CallableIdentity.instance(value)
        assert {identity: 1}[CallableIdentity.instance(value)] == 1
        assert identity != CallableIdentity.instance(Unhashable())

    def test_member_separates(self) -> None:
        """Test members of the same object are distinct identities."""
        obj = Adder(1)
        first = CallableIdentity.instance(obj, "Adder.a")
        assert first != CallableIdentity.instance(obj, "Adder.b")

    def test_kinds_never_equal(self) -> None:
        """Test shared and instance identities never compare equal."""
        token = SharedToken("app", "f")
        assert CallableIdentity.shared(token) != CallableIdentity.instance(token)

    def test_belongs_to(self) -> None:
        """Test category membership uses isinstance on the token."""
        identity = CallableIdentity.instance(Adder(1))
        assert identity.belongs_to(Adder)
        assert identity.belongs_to((int, Adder))
        assert not identity.belongs_to(Unhashable)

    def test_repr(self) -> None:
        """Test readable forms."""
        assert repr(CallableIdentity.shared(SharedToken("app", "f"))) == "Shared(app.f)"
        assert repr(CallableIdentity.instance(Adder(1), "Adder.__call__")).endswith(".__call__)")


class TestIdentityOf:
    """Tests for identity_of."""

    def test_function(self) -> None:
        """Test plain functions get shared identities."""
        assert identity_of(top_level) == CallableIdentity.shared(SharedToken.of(top_level))

    def test_closure_and_object(self) -> None:
        """Test closures and callable objects get instance identities."""
        closure = make_closure(1)
        obj = Adder(1)
        assert identity_of(closure) == CallableIdentity.instance(closure)
        assert identity_of(obj) == CallableIdentity.instance(obj)

    def test_wrapper_identity_wins(self) -> None:
        """Test values exposing an identity attribute use it."""
        identity = CallableIdentity.shared(SharedToken("app", "f"))

        class Wrapper:
            def __init__(self) -> None:
                self.identity = identity

            def __call__(self) -> None: ...

            def owns_identity(self, other: CallableIdentity) -> bool:
                return other == identity

        wrapper = Wrapper()
        assert identity_of(wrapper) is identity
        assert isinstance(wrapper, IdentityOwner)
