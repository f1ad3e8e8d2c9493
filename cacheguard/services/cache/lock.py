"""
Distributed Lock

Per-key mutual exclusion built on the cache store's atomic set-if-absent.
Each acquisition stores a random owner token and release deletes the key only
while it still holds that token, so a holder whose lock expired and was taken
over cannot release the new holder's lock.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import uuid4

from ...domain.cache.entities import LockHandle
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import TTL, CacheKey
from ...monitoring.cache_metrics import lock_acquisitions_total

logger = logging.getLogger(__name__)


class DistributedLock:
    """Token-owned lock whose only timeout is the key's TTL."""

    def __init__(self, cache_store: CacheStore):
        self.cache_store = cache_store

    async def try_acquire(self, lock_key: CacheKey, ttl: TTL) -> Optional[LockHandle]:
        """
        Attempt to take the lock without waiting.

        Args:
            lock_key: Lock key derived from the cached identifier
            ttl: Safety TTL after which a crashed holder's lock frees itself

        Returns:
            A handle if this call created the key, None if the lock is held
        """
        token = uuid4().hex
        acquired = await self.cache_store.set_if_absent(
            lock_key, token.encode("ascii"), ttl
        )
        lock_acquisitions_total.labels(
            outcome="acquired" if acquired else "contended"
        ).inc()

        if not acquired:
            return None

        logger.debug(f"Acquired lock {lock_key}", extra={"ttl_ms": ttl.milliseconds})
        return LockHandle(key=lock_key, ttl=ttl, token=token)

    async def release(self, handle: LockHandle) -> bool:
        """
        Release the lock if this handle still owns it.

        Returns:
            True if the key was deleted, False if it had expired or changed owner
        """
        released = await self.cache_store.delete_if_equals(
            handle.key, handle.token.encode("ascii")
        )
        if not released:
            lock_acquisitions_total.labels(outcome="lost").inc()
            logger.warning(
                f"Lock {handle.key} was no longer owned at release",
                extra={"lock_key": str(handle.key), "ttl_ms": handle.ttl.milliseconds},
            )
        return released

    @asynccontextmanager
    async def hold(
        self, lock_key: CacheKey, ttl: TTL
    ) -> AsyncIterator[Optional[LockHandle]]:
        """Try to acquire for the duration of the block; yields None when contended."""
        handle = await self.try_acquire(lock_key, ttl)
        try:
            yield handle
        finally:
            if handle is not None:
                await self.release(handle)
