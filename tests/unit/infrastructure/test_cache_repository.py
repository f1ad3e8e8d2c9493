"""
Tests for the Redis cache store.

Primitives run against fakeredis; error translation uses a mocked client.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError, ResponseError, TimeoutError

from cacheguard.domain.cache.value_objects import TTL, CacheKey
from cacheguard.infrastructure.redis.exceptions import (
    RedisConnectionException,
    RedisException,
    RedisOperationTimeoutException,
)
from cacheguard.infrastructure.repositories.cache_repository import RedisCacheStore

KEY = CacheKey("item:1")


class TestRedisCacheStore:
    """Cache store primitives."""

    @pytest.mark.asyncio
    async def test_get_missing_key(self, cache_store):
        assert await cache_store.get(KEY) is None

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, cache_store):
        await cache_store.set(KEY, b"payload", TTL.from_seconds(30))

        assert await cache_store.get(KEY) == b"payload"
        remaining = await cache_store.get_ttl(KEY)
        assert 0 < remaining <= 30_000

    @pytest.mark.asyncio
    async def test_set_without_ttl_persists(self, cache_store):
        await cache_store.set(KEY, b"payload")

        assert await cache_store.get_ttl(KEY) is None
        assert await cache_store.get(KEY) == b"payload"

    @pytest.mark.asyncio
    async def test_set_overwrites(self, cache_store):
        await cache_store.set(KEY, b"old", TTL.from_seconds(30))
        await cache_store.set(KEY, b"new")

        assert await cache_store.get(KEY) == b"new"
        assert await cache_store.get_ttl(KEY) is None

    @pytest.mark.asyncio
    async def test_set_if_absent(self, cache_store):
        assert await cache_store.set_if_absent(KEY, b"a", TTL.from_seconds(10)) is True
        assert await cache_store.set_if_absent(KEY, b"b", TTL.from_seconds(10)) is False
        assert await cache_store.get(KEY) == b"a"

    @pytest.mark.asyncio
    async def test_delete(self, cache_store):
        await cache_store.set(KEY, b"payload")

        assert await cache_store.delete(KEY) is True
        assert await cache_store.delete(KEY) is False

    @pytest.mark.asyncio
    async def test_delete_if_equals(self, cache_store):
        await cache_store.set(KEY, b"token-a")

        assert await cache_store.delete_if_equals(KEY, b"token-b") is False
        assert await cache_store.get(KEY) == b"token-a"
        assert await cache_store.delete_if_equals(KEY, b"token-a") is True
        assert await cache_store.get(KEY) is None
        assert await cache_store.delete_if_equals(KEY, b"token-a") is False

    @pytest.mark.asyncio
    async def test_expire(self, cache_store):
        assert await cache_store.expire(KEY, TTL.from_seconds(5)) is False

        await cache_store.set(KEY, b"payload")
        assert await cache_store.expire(KEY, TTL.from_seconds(5)) is True
        assert 0 < await cache_store.get_ttl(KEY) <= 5_000

    @pytest.mark.asyncio
    async def test_get_ttl_missing_key(self, cache_store):
        assert await cache_store.get_ttl(KEY) is None


class TestErrorTranslation:
    """redis-py errors surface as cache store exceptions."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        client.get = AsyncMock(side_effect=TimeoutError("timed out"))
        store = RedisCacheStore(client)

        with pytest.raises(RedisOperationTimeoutException) as exc_info:
            await store.get(KEY)

        assert exc_info.value.details["operation"] == "get"
        assert exc_info.value.details["key"] == "item:1"
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert exc_info.value.error_code == "REDIS_TIMEOUT_ERROR"
        assert exc_info.value.details["original_error_type"] == "TimeoutError"

    @pytest.mark.asyncio
    async def test_connection_error(self, client):
        client.set = AsyncMock(side_effect=ConnectionError("connection refused"))
        store = RedisCacheStore(client)

        with pytest.raises(RedisConnectionException) as exc_info:
            await store.set(KEY, b"payload", TTL.from_seconds(1))

        assert exc_info.value.error_code == "REDIS_CONNECTION_ERROR"

    @pytest.mark.asyncio
    async def test_other_redis_error(self, client):
        client.delete = AsyncMock(side_effect=ResponseError("WRONGTYPE"))
        store = RedisCacheStore(client)

        with pytest.raises(RedisException) as exc_info:
            await store.delete(KEY)

        assert exc_info.value.error_code == "REDIS_ERROR"
        assert exc_info.value.details["operation"] == "delete"
