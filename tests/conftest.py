"""Shared fixtures: a fresh in-memory store per test."""

import pytest

from chatsync.identity import UserContext
from chatsync.store import MemoryKeyPathStore
from chatsync.sync import SyncOrchestrator


@pytest.fixture
def store() -> MemoryKeyPathStore:
    return MemoryKeyPathStore()


@pytest.fixture
def orchestrator(store) -> SyncOrchestrator:
    return SyncOrchestrator(store)


@pytest.fixture
def alice() -> UserContext:
    return UserContext.for_email("a@example.com", "Alice")


@pytest.fixture
def bob() -> UserContext:
    return UserContext.for_email("b@example.com", "Bob")
