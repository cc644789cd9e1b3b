"""
Shared fixtures. Coroutines are driven with asyncio.run through `run`.
"""
import asyncio

import pytest

from ledger_guard import GuardSettings, InMemoryDocumentStore, LedgerGuard, PolicyConfig
from factories import NOW_NS, seed_data


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store():
    return InMemoryDocumentStore(seed_data())


@pytest.fixture
def guard(store):
    return LedgerGuard(store, clock=lambda: NOW_NS)


@pytest.fixture
def strict_guard(store):
    """Self-approval prohibited."""
    settings = GuardSettings(policy=PolicyConfig(prohibit_self_approval=True))
    return LedgerGuard(store, settings=settings, clock=lambda: NOW_NS)


@pytest.fixture
def validate(guard):
    """Synchronous shortcut: validate(collection, proposed, previous=None, key=None)."""
    def _validate(collection, proposed, previous=None, key=None):
        return run(guard.validate(collection, proposed, previous=previous, key=key))
    return _validate
