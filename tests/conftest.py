"""Shared fixtures for the yearbird test suite."""

from __future__ import annotations

import itertools

import pytest

from yearbird.categories import CategoryRegistry, CategoryStore
from yearbird.storage import MemoryKeyValueStore


class FakeClock:
    """Monotonic millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def category_store(storage: MemoryKeyValueStore, clock: FakeClock) -> CategoryStore:
    counter = itertools.count(1)
    return CategoryStore(storage, clock=clock, id_factory=lambda: f"custom-{next(counter)}")


@pytest.fixture
def sync_calls() -> list[list]:
    return []


@pytest.fixture
def registry(category_store: CategoryStore, sync_calls: list[list]) -> CategoryRegistry:
    return CategoryRegistry(category_store, sync=sync_calls.append)
