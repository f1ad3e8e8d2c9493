"""
Redis Cache Store Implementation

Infrastructure implementation of the CacheStore interface using Redis.
Maps every primitive the cache layer needs onto single atomic Redis commands.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional, Union

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import TTL, CacheKey
from ..redis.exceptions import (
    RedisConnectionException,
    RedisException,
    RedisOperationTimeoutException,
)

logger = logging.getLogger(__name__)


def _as_bytes(value: Union[bytes, str, None]) -> Optional[bytes]:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


class RedisCacheStore(CacheStore):
    """Redis implementation of the cache store."""

    def __init__(self, client: Redis):
        self._client = client

    @asynccontextmanager
    async def _operation(self, operation: str, key: CacheKey):
        """Translate redis-py errors into cache store exceptions."""
        try:
            yield
        except RedisTimeoutError as e:
            logger.error(f"Redis {operation} timed out for {key}")
            raise RedisOperationTimeoutException(
                operation=operation, key=str(key), original_error=e
            ) from e
        except RedisConnectionError as e:
            logger.error(f"Redis connection lost during {operation} for {key}: {e}")
            raise RedisConnectionException(
                message=f"Redis connection failed during {operation}",
                original_error=e,
            ) from e
        except RedisError as e:
            logger.exception(f"Redis {operation} failed for {key}: {e}")
            raise RedisException(
                message=f"Redis {operation} failed: {e}",
                details={"operation": operation, "key": str(key)},
                original_error=e,
            ) from e

    async def get(self, key: CacheKey) -> Optional[bytes]:
        async with self._operation("get", key):
            return _as_bytes(await self._client.get(key.value))

    async def set(self, key: CacheKey, value: bytes, ttl: Optional[TTL] = None) -> None:
        async with self._operation("set", key):
            if ttl is None:
                await self._client.set(key.value, value)
            else:
                await self._client.set(key.value, value, px=ttl.milliseconds)

        logger.debug(
            f"Stored cache key {key}",
            extra={"key": str(key), "ttl_ms": ttl.milliseconds if ttl else None},
        )

    async def set_if_absent(self, key: CacheKey, value: bytes, ttl: TTL) -> bool:
        async with self._operation("set_if_absent", key):
            result = await self._client.set(
                key.value, value, px=ttl.milliseconds, nx=True
            )
        return bool(result)

    async def delete(self, key: CacheKey) -> bool:
        async with self._operation("delete", key):
            removed = await self._client.delete(key.value)
        return removed > 0

    async def delete_if_equals(self, key: CacheKey, expected: bytes) -> bool:
        """Compare-and-delete under WATCH so a concurrent overwrite aborts the delete."""
        async with self._operation("delete_if_equals", key):
            async with self._client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key.value)
                    current = _as_bytes(await pipe.get(key.value))
                    if current != expected:
                        return False
                    pipe.multi()
                    pipe.delete(key.value)
                    results = await pipe.execute()
                except WatchError:
                    logger.debug(f"Key {key} changed while releasing, delete aborted")
                    return False
        return bool(results and results[0])

    async def expire(self, key: CacheKey, ttl: TTL) -> bool:
        async with self._operation("expire", key):
            return bool(await self._client.pexpire(key.value, ttl.milliseconds))

    async def get_ttl(self, key: CacheKey) -> Optional[int]:
        async with self._operation("get_ttl", key):
            remaining = await self._client.pttl(key.value)
        # -2: missing, -1: no expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)
