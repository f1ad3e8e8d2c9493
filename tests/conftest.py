"""
Main pytest configuration for cacheguard tests.

Fixtures for an in-process Redis, the cache store, lock, rebuild dispatcher
and a counting fake backing store.
"""

import asyncio
import os
from typing import Dict, Optional

import pytest
import pytest_asyncio
from pydantic import BaseModel

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"

import fakeredis.aioredis

from cacheguard.domain.cache.codec import CacheCodec
from cacheguard.domain.cache.repository_interfaces import BackingStore
from cacheguard.domain.cache.value_objects import TTL, CachePolicy
from cacheguard.infrastructure.repositories.cache_repository import RedisCacheStore
from cacheguard.services.cache.cache_client import CacheClient
from cacheguard.services.cache.lock import DistributedLock
from cacheguard.services.cache.rebuild_dispatcher import RebuildDispatcher


class Item(BaseModel):
    """Sample value type cached in tests."""

    id: int
    name: str
    price: int = 0


class FakeBackingStore(BackingStore[int, Item]):
    """In-memory system of record that counts fetches."""

    def __init__(self, records: Optional[Dict[int, Item]] = None):
        self.records: Dict[int, Item] = dict(records or {})
        self.fetch_calls = 0
        self.persist_calls = 0
        self.delay: float = 0.0
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def fetch(self, identifier: int) -> Optional[Item]:
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.records.get(identifier)

    async def persist(self, record: Item) -> None:
        self.persist_calls += 1
        self.records[record.id] = record


@pytest_asyncio.fixture
async def redis_client():
    """Fake async Redis shared by every collaborator in a test."""
    client = fakeredis.aioredis.FakeRedis()
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def cache_store(redis_client):
    return RedisCacheStore(redis_client)


@pytest.fixture
def lock(cache_store):
    return DistributedLock(cache_store)


@pytest_asyncio.fixture
async def dispatcher(cache_store, lock):
    """Running rebuild dispatcher, stopped after the test."""
    rebuild_dispatcher = RebuildDispatcher(cache_store, lock, pool_size=4)
    await rebuild_dispatcher.start()
    yield rebuild_dispatcher
    await rebuild_dispatcher.stop(graceful_timeout=5)


@pytest.fixture
def cache_client(cache_store, dispatcher, lock):
    return CacheClient(cache_store, dispatcher, lock)


@pytest.fixture
def policy():
    """Item namespace policy with short retry interval."""
    return CachePolicy(
        key_prefix="item:",
        lock_prefix="lock:item:",
        ttl=TTL.minutes(30),
        null_ttl=TTL.minutes(2),
        lock_ttl=TTL.from_seconds(10),
        logical_ttl=TTL.from_seconds(20),
        retry_interval_ms=10,
        max_lock_attempts=500,
    )


@pytest.fixture
def item_codec():
    return CacheCodec(Item)


@pytest.fixture
def backing_store():
    return FakeBackingStore(
        {
            1: Item(id=1, name="noodle house", price=25),
            7: Item(id=7, name="tea shop", price=12),
        }
    )


# Test markers and configuration
def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "infrastructure" in item.nodeid:
            item.add_marker(pytest.mark.redis)
