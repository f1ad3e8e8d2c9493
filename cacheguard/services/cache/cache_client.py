"""
Cache Client Service

Read-through cache in front of a slower backing store.
Offers three read strategies, each defending against a different failure mode:

- pass-through: tombstones negative lookups (penetration)
- mutex: one synchronous rebuild per key at a time (breakdown)
- logical expiration: never blocks, refreshes stale entries in the background (avalanche)

Writes go to the backing store first, then evict the cache key.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from opentelemetry import trace

from ...domain.cache.codec import TOMBSTONE_PAYLOAD, CacheCodec
from ...domain.cache.entities import TOMBSTONE, CacheEntry, Tombstone
from ...domain.cache.exceptions import (
    BackingStoreException,
    LockAcquireTimeoutException,
)
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import TTL, CacheKey, CachePolicy, ReadStrategy
from ...monitoring.cache_metrics import record_fetch, record_lookup
from .lock import DistributedLock
from .rebuild_dispatcher import RebuildDispatcher, RebuildTask

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ID = TypeVar("ID")
V = TypeVar("V")

Fetch = Callable[[ID], Awaitable[Optional[V]]]


class CacheClient:
    """
    Read-through cache client.

    All coordination between concurrent readers goes through the cache store,
    so the guarantees hold across processes, not only across tasks.
    """

    def __init__(
        self,
        cache_store: CacheStore,
        dispatcher: RebuildDispatcher,
        lock: Optional[DistributedLock] = None,
    ):
        self.cache_store = cache_store
        self.dispatcher = dispatcher
        self.lock = lock or dispatcher.lock

    # Direct writes

    async def set(self, key: CacheKey, value: Any, codec: CacheCodec, ttl: TTL) -> None:
        """Cache a value with a physical TTL and no logical expiry."""
        await self.cache_store.set(key, codec.encode_entry(codec.plain(value)), ttl)

    async def set_with_logical_expire(
        self, key: CacheKey, value: Any, codec: CacheCodec, ttl: TTL
    ) -> CacheEntry:
        """
        Cache a value wrapped with a logical expiry and no physical TTL.

        This is the provisioning step the logical-expiration strategy relies on.
        """
        entry = codec.wrap(value, ttl)
        await self.cache_store.set(key, codec.encode_entry(entry))
        logger.debug(
            f"Stored logically expiring entry {key}",
            extra={"logical_expire_at": entry.logical_expire_at.isoformat()},
        )
        return entry

    async def invalidate(self, policy: CachePolicy, identifier: Any) -> bool:
        """Evict the cache entry for an identifier."""
        key = policy.cache_key(identifier)
        removed = await self.cache_store.delete(key)
        logger.debug(f"Invalidated {key}", extra={"removed": removed})
        return removed

    # Read strategies

    async def query(
        self,
        strategy: ReadStrategy,
        policy: CachePolicy,
        identifier: ID,
        fetch: Fetch,
        codec: CacheCodec,
    ) -> Optional[V]:
        """Run the named read strategy."""
        strategy = ReadStrategy(strategy)
        if strategy == ReadStrategy.PASS_THROUGH:
            return await self.query_with_pass_through(policy, identifier, fetch, codec)
        if strategy == ReadStrategy.MUTEX:
            return await self.query_with_mutex(policy, identifier, fetch, codec)
        return await self.query_with_logical_expire(policy, identifier, fetch, codec)

    async def query_with_pass_through(
        self, policy: CachePolicy, identifier: ID, fetch: Fetch, codec: CacheCodec
    ) -> Optional[V]:
        """
        Read through the cache, remembering negative lookups.

        Args:
            policy: Key namespace and TTLs for this call site
            identifier: Record identifier
            fetch: Backing-store read returning None when absent
            codec: Codec for the namespace's value type

        Returns:
            The value, or None if the record is confirmed absent

        Raises:
            BackingStoreException: If the fetch fails
        """
        key = policy.cache_key(identifier)
        strategy = ReadStrategy.PASS_THROUGH.value

        with tracer.start_as_current_span("cache.query_with_pass_through") as span:
            span.set_attribute("cache.key", str(key))

            cached = await self._lookup(key, codec)
            if cached is TOMBSTONE:
                record_lookup(policy.namespace, strategy, "tombstone")
                return None
            if cached is not None:
                record_lookup(policy.namespace, strategy, "hit")
                return cached

            record_lookup(policy.namespace, strategy, "miss")
            return await self._load_and_populate(policy, key, identifier, fetch, codec)

    async def query_with_mutex(
        self, policy: CachePolicy, identifier: ID, fetch: Fetch, codec: CacheCodec
    ) -> Optional[V]:
        """
        Read through the cache with at most one backing-store fetch per key in flight.

        Readers that lose the lock race sleep ``policy.retry_interval_ms`` and
        look again. Waiting is bounded by ``policy.max_lock_attempts`` and by the
        lock TTL; past either bound the holder is presumed stalled.

        Raises:
            BackingStoreException: If the fetch fails
            LockAcquireTimeoutException: If the lock stays contended past the bound
        """
        key = policy.cache_key(identifier)
        lock_key = policy.lock_key(identifier)
        strategy = ReadStrategy.MUTEX.value
        started = time.monotonic()
        attempts = 0

        with tracer.start_as_current_span("cache.query_with_mutex") as span:
            span.set_attribute("cache.key", str(key))

            while True:
                cached = await self._lookup(key, codec)
                if cached is TOMBSTONE:
                    record_lookup(policy.namespace, strategy, "tombstone")
                    return None
                if cached is not None:
                    record_lookup(policy.namespace, strategy, "hit")
                    return cached

                attempts += 1
                handle = await self.lock.try_acquire(lock_key, policy.lock_ttl)
                if handle is not None:
                    span.set_attribute("cache.lock_attempts", attempts)
                    try:
                        # Another holder may have populated the key since our read
                        cached = await self._lookup(key, codec)
                        if cached is TOMBSTONE:
                            record_lookup(policy.namespace, strategy, "tombstone")
                            return None
                        if cached is not None:
                            record_lookup(policy.namespace, strategy, "hit")
                            return cached

                        record_lookup(policy.namespace, strategy, "miss")
                        return await self._load_and_populate(
                            policy, key, identifier, fetch, codec
                        )
                    finally:
                        await self.lock.release(handle)

                waited = time.monotonic() - started
                if (
                    attempts >= policy.max_lock_attempts
                    or waited >= policy.lock_ttl.seconds
                ):
                    span.set_status(
                        trace.Status(trace.StatusCode.ERROR, "lock timeout")
                    )
                    logger.warning(
                        f"Gave up waiting for rebuild lock {lock_key}",
                        extra={"attempts": attempts, "waited_seconds": waited},
                    )
                    raise LockAcquireTimeoutException(str(lock_key), attempts, waited)

                # CancelledError propagates: a cancelled wait means shutdown
                await asyncio.sleep(policy.retry_interval_ms / 1000)

    async def query_with_logical_expire(
        self, policy: CachePolicy, identifier: ID, fetch: Fetch, codec: CacheCodec
    ) -> Optional[V]:
        """
        Serve the cached value without ever waiting on the backing store.

        A missing key returns None; entries must be provisioned with
        ``set_with_logical_expire`` first. A logically expired entry is still
        returned, and the first reader to win the rebuild lock schedules a
        background refresh.
        """
        key = policy.cache_key(identifier)
        strategy = ReadStrategy.LOGICAL_EXPIRE.value

        with tracer.start_as_current_span("cache.query_with_logical_expire") as span:
            span.set_attribute("cache.key", str(key))

            entry = await self._lookup_entry(key, codec)
            if entry is None:
                record_lookup(policy.namespace, strategy, "miss")
                return None
            if entry is TOMBSTONE:
                record_lookup(policy.namespace, strategy, "tombstone")
                return None
            if not entry.is_logically_expired():
                record_lookup(policy.namespace, strategy, "hit")
                return entry.value

            record_lookup(policy.namespace, strategy, "stale")
            span.set_attribute("cache.stale", True)

            handle = await self.lock.try_acquire(
                policy.lock_key(identifier), policy.lock_ttl
            )
            if handle is None:
                # Rebuild already in flight
                return entry.value

            try:
                # A rebuild may have completed between our read and acquire
                current = await self._lookup_entry(key, codec)
                if (
                    isinstance(current, CacheEntry)
                    and not current.is_logically_expired()
                ):
                    await self.lock.release(handle)
                    return current.value

                await self.dispatcher.submit(
                    RebuildTask(
                        key=key,
                        fetch=lambda: fetch(identifier),
                        codec=codec,
                        ttl=policy.logical_ttl,
                        lock=handle,
                        logical_expire=True,
                        null_ttl=policy.null_ttl,
                        namespace=policy.namespace,
                    )
                )
            except BaseException:
                await self.lock.release(handle)
                raise
            return entry.value

    # Helpers

    async def _lookup(
        self, key: CacheKey, codec: CacheCodec
    ) -> Union[Any, Tombstone, None]:
        """
        Physical-TTL lookup: None for a missing key, TOMBSTONE, or the value.

        A logically expired entry left by a warm-up or background rebuild counts
        as a miss, so the synchronous strategies reload it.
        """
        entry = await self._lookup_entry(key, codec)
        if entry is None or entry is TOMBSTONE:
            return entry
        if entry.is_logically_expired():
            return None
        return entry.value

    async def _lookup_entry(
        self, key: CacheKey, codec: CacheCodec
    ) -> Union[CacheEntry, Tombstone, None]:
        raw = await self.cache_store.get(key)
        if raw is None:
            return None
        return codec.decode_entry(raw, key=str(key))

    async def _load_and_populate(
        self,
        policy: CachePolicy,
        key: CacheKey,
        identifier: ID,
        fetch: Fetch,
        codec: CacheCodec,
    ) -> Optional[V]:
        """Fetch from the backing store and cache the value or a tombstone."""
        try:
            value = await fetch(identifier)
        except Exception as e:
            record_fetch(policy.namespace, "error")
            logger.error(f"Backing store fetch failed for {key}: {e}")
            raise BackingStoreException("fetch", key=str(key), original_error=e) from e

        if value is None:
            record_fetch(policy.namespace, "absent")
            await self.cache_store.set(key, TOMBSTONE_PAYLOAD, policy.null_ttl)
            logger.debug(
                f"Cached tombstone for {key}",
                extra={"null_ttl_ms": policy.null_ttl.milliseconds},
            )
            return None

        record_fetch(policy.namespace, "found")
        await self.cache_store.set(
            key, codec.encode_entry(codec.plain(value)), policy.ttl
        )
        return value
