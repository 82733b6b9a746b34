"""Tests for the invalidation service."""

from __future__ import annotations

import pytest

from memoization.identity import CallableIdentity, SharedToken
from memoization.invalidation import InvalidationService
from memoization.keys import build_key
from memoization.registry import StoreRegistry
from memoization.stores import DICT_STORE, IDENTITY_STORE
from memoization.testing import RecordingMemoHook


def plain(x):
    return x


class Counter:
    def __call__(self, x):
        return x


class Other:
    def __call__(self, x):
        return x


def fill(registry: StoreRegistry, identity: CallableIdentity, kind=IDENTITY_STORE) -> None:
    registry.get_or_create_store(identity, kind).setdefault(build_key((1,)), 1)


@pytest.fixture
def registry() -> StoreRegistry:
    return StoreRegistry()


@pytest.fixture
def service(registry: StoreRegistry) -> InvalidationService:
    return InvalidationService(registry)


class TestClearFor:
    """Tests for clear_for."""

    def test_exact_identity_all_kinds(
        self, registry: StoreRegistry, service: InvalidationService
    ) -> None:
        """Test every store kind of the identity is cleared, and nothing else."""
        target = CallableIdentity.shared(SharedToken("app", "f"))
        other = CallableIdentity.shared(SharedToken("app", "g"))
        fill(registry, target)
        fill(registry, target, DICT_STORE)
        fill(registry, other)

        assert service.clear_for(target) == 2
        assert all(len(store) == 0 for store in registry.stores_for(target))
        assert len(registry.get_store(other, IDENTITY_STORE)) == 1

    def test_entries_persist(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test clearing keeps the canonical store."""
        target = CallableIdentity.shared(SharedToken("app", "f"))
        fill(registry, target)
        store = registry.get_store(target, IDENTITY_STORE)
        service.clear_for(target)
        assert registry.get_or_create_store(target, IDENTITY_STORE) is store

    def test_plain_function(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test plain functions resolve to their shared identity."""
        fill(registry, CallableIdentity.shared(SharedToken.of(plain)))
        assert service.clear_for(plain) == 1

    def test_instance_scope(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test clearing one instance leaves another instance of the type intact."""
        first, second = Counter(), Counter()
        fill(registry, CallableIdentity.instance(first))
        fill(registry, CallableIdentity.instance(second))

        assert service.clear_for(first) == 1
        assert len(registry.get_store(CallableIdentity.instance(second), IDENTITY_STORE)) == 1

    def test_object_members(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test an object clears every memoized member it owns."""
        obj = Counter()
        fill(registry, CallableIdentity.instance(obj, "Counter.a"))
        fill(registry, CallableIdentity.instance(obj, "Counter.b"))
        fill(registry, CallableIdentity.instance(Counter(), "Counter.a"))
        assert service.clear_for(obj) == 2

    def test_identity_owner(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test owners decide which identities they own."""
        wanted = CallableIdentity.shared(SharedToken("app", "f"))
        fill(registry, wanted)
        fill(registry, CallableIdentity.shared(SharedToken("app", "g")))

        class Owner:
            def owns_identity(self, identity: CallableIdentity) -> bool:
                return identity == wanted

        assert service.clear_for(Owner()) == 1

    def test_unknown_target(self, service: InvalidationService) -> None:
        """Test clearing something never memoized clears nothing."""
        assert service.clear_for(Counter()) == 0


class TestClearForCategory:
    """Tests for clear_for_category."""

    def test_category(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test every instance of the type is cleared, other types are not."""
        counters = [Counter(), Counter()]
        for counter in counters:
            fill(registry, CallableIdentity.instance(counter))
        other = CallableIdentity.instance(Other())
        fill(registry, other)
        fill(registry, CallableIdentity.shared(SharedToken("app", "f")))

        assert service.clear_for_category(Counter) == 2
        assert len(registry.get_store(other, IDENTITY_STORE)) == 1

    def test_tuple_category(self, registry: StoreRegistry, service: InvalidationService) -> None:
        """Test tuples of types."""
        fill(registry, CallableIdentity.instance(Counter()))
        fill(registry, CallableIdentity.instance(Other()))
        assert service.clear_for_category((Counter, Other)) == 2

    def test_shared_tokens_by_category(
        self, registry: StoreRegistry, service: InvalidationService
    ) -> None:
        """Test shared identities are matched through their token type."""
        fill(registry, CallableIdentity.shared(SharedToken("app", "f")))
        assert service.clear_for_category(SharedToken) == 1

    def test_invalid_category(self, service: InvalidationService) -> None:
        """Test non-types are rejected."""
        with pytest.raises(TypeError):
            service.clear_for_category("Counter")  # type: ignore[arg-type]


class TestClearAll:
    """Tests for clear_all."""

    def test_everything_cleared(
        self, registry: StoreRegistry, service: InvalidationService
    ) -> None:
        """Test every store is emptied and every entry kept."""
        fill(registry, CallableIdentity.shared(SharedToken("app", "f")))
        fill(registry, CallableIdentity.instance(Counter()), DICT_STORE)
        assert service.clear_all() == 2
        assert len(registry) == 2
        assert all(len(store) == 0 for store in registry.all_stores())


class TestNotifications:
    """Tests for hook and log output."""

    def test_hook_notified(self, registry: StoreRegistry) -> None:
        """Test on_clear receives the count and scope."""
        hook = RecordingMemoHook()
        service = InvalidationService(registry, hook=hook)
        fill(registry, CallableIdentity.shared(SharedToken("app", "f")))
        service.clear_all()
        assert hook.clears == [(1, {"scope": "all", "target": None})]

    def test_logged(
        self, registry: StoreRegistry, service: InvalidationService, captured_logs
    ) -> None:
        """Test invalidations are logged with their scope."""
        _, handler = captured_logs
        service.clear_for_category(Counter)
        record = handler.records[-1]
        assert record.message == "Stores cleared"
        assert record.extra["scope"] == "category"
        assert record.extra["stores"] == 0
