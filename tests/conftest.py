"""
Shared fixtures
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent))

from coursegraph.graph.cache import MemoryCache
from coursegraph.graph.memory import MemoryGraphStore
from coursegraph.graph.store import SQLGraphStore
from coursegraph.manager import DependencyManager

NOW = datetime(2024, 5, 1, 9, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def store():
    return MemoryGraphStore()


@pytest.fixture
async def sql_store():
    store = SQLGraphStore("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    await store.connect()
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def cache():
    return MemoryCache(prefix="test", ttl_seconds=600)


@pytest.fixture
def audit_log():
    return []


@pytest.fixture
def manager(store, cache, audit_log):
    async def sink(event):
        audit_log.append(event)

    return DependencyManager(store, cache=cache, max_depth=10, audit_sink=sink, clock=fixed_clock)
