"""Pytest fixtures for memoization tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from memoization.logging import BufferingHandler, LogLevel, MemoLogger, get_logger
from memoization.runtime import MemoRuntime, set_default_runtime
from memoization.testing import RecordingMemoHook, create_test_runtime


@pytest.fixture
def runtime_and_hook() -> tuple[MemoRuntime, RecordingMemoHook]:
    """Create an isolated runtime with a recording hook."""
    return create_test_runtime()


@pytest.fixture
def runtime(runtime_and_hook: tuple[MemoRuntime, RecordingMemoHook]) -> MemoRuntime:
    """Isolated runtime."""
    return runtime_and_hook[0]


@pytest.fixture
def hook(runtime_and_hook: tuple[MemoRuntime, RecordingMemoHook]) -> RecordingMemoHook:
    """Recording hook attached to ``runtime``."""
    return runtime_and_hook[1]


@pytest.fixture
def default_runtime() -> Iterator[MemoRuntime]:
    """Install a fresh process runtime for the duration of a test."""
    fresh = MemoRuntime()
    previous = set_default_runtime(fresh)
    yield fresh
    set_default_runtime(previous)


@pytest.fixture
def captured_logs() -> Iterator[tuple[MemoLogger, BufferingHandler]]:
    """Capture DEBUG records of the invalidation logger."""
    logger = get_logger("memoization.invalidation")
    handler = BufferingHandler()
    previous_level = logger.level
    logger.level = LogLevel.DEBUG
    logger.add_handler(handler)
    yield logger, handler
    logger.remove_handler(handler)
    logger.level = previous_level
