"""
Tests for the background rebuild dispatcher.
"""

import asyncio

import pytest

from cacheguard.domain.cache.codec import TOMBSTONE_PAYLOAD
from cacheguard.domain.cache.exceptions import RebuildDispatcherClosedException
from cacheguard.domain.cache.value_objects import TTL, CacheKey, OverflowPolicy
from cacheguard.services.cache.rebuild_dispatcher import RebuildDispatcher, RebuildTask
from tests.conftest import Item


async def _make_task(lock, item_codec, fetch, identifier=1, logical_expire=True):
    key = CacheKey(f"item:{identifier}")
    handle = await lock.try_acquire(CacheKey(f"lock:item:{identifier}"), TTL.from_seconds(10))
    assert handle is not None
    return RebuildTask(
        key=key,
        fetch=fetch,
        codec=item_codec,
        ttl=TTL.minutes(30),
        lock=handle,
        logical_expire=logical_expire,
        null_ttl=TTL.minutes(2),
        namespace="item",
    )


def _returning(value):
    async def fetch():
        return value

    return fetch


class TestRebuildExecution:
    """What a worker writes for each rebuild outcome."""

    @pytest.mark.asyncio
    async def test_logical_rebuild_writes_envelope(
        self, dispatcher, lock, item_codec, cache_store, redis_client
    ):
        item = Item(id=1, name="noodle house", price=25)
        task = await _make_task(lock, item_codec, _returning(item))

        assert await dispatcher.submit(task) is True
        await dispatcher.join()

        entry = item_codec.decode_entry(await cache_store.get(task.key))
        assert entry.value == item
        assert not entry.is_logically_expired()
        assert await redis_client.pttl("item:1") == -1
        assert await redis_client.exists("lock:item:1") == 0
        assert dispatcher.get_stats()["completed"] == 1

    @pytest.mark.asyncio
    async def test_physical_rebuild_writes_value_with_ttl(
        self, dispatcher, lock, item_codec, cache_store, redis_client
    ):
        item = Item(id=2, name="bakery")
        task = await _make_task(
            lock, item_codec, _returning(item), identifier=2, logical_expire=False
        )

        await dispatcher.submit(task)
        await dispatcher.join()

        entry = item_codec.decode_entry(await cache_store.get(task.key))
        assert entry.value == item
        assert entry.logical_expire_at is None
        assert 0 < await redis_client.pttl("item:2") <= TTL.minutes(30).milliseconds

    @pytest.mark.asyncio
    async def test_absent_record_writes_tombstone(
        self, dispatcher, lock, item_codec, redis_client
    ):
        task = await _make_task(lock, item_codec, _returning(None), identifier=3)

        await dispatcher.submit(task)
        await dispatcher.join()

        assert await redis_client.get("item:3") == TOMBSTONE_PAYLOAD
        assert 0 < await redis_client.pttl("item:3") <= TTL.minutes(2).milliseconds

    @pytest.mark.asyncio
    async def test_failure_releases_lock_and_keeps_entry(
        self, dispatcher, lock, item_codec, redis_client
    ):
        await redis_client.set("item:4", b"previous")

        async def failing_fetch():
            raise RuntimeError("database unavailable")

        task = await _make_task(lock, item_codec, failing_fetch, identifier=4)

        await dispatcher.submit(task)
        await dispatcher.join()

        assert await redis_client.get("item:4") == b"previous"
        assert await redis_client.exists("lock:item:4") == 0
        assert dispatcher.get_stats()["failed"] == 1


class TestOverflowPolicy:
    """Saturation behavior."""

    @pytest.mark.asyncio
    async def test_drop_policy_releases_lock_of_dropped_task(
        self, cache_store, lock, item_codec, redis_client
    ):
        gate = asyncio.Event()

        async def blocked_fetch():
            await gate.wait()
            return Item(id=0, name="slow")

        dispatcher = RebuildDispatcher(
            cache_store,
            lock,
            pool_size=1,
            queue_capacity=1,
            overflow_policy=OverflowPolicy.DROP,
        )
        await dispatcher.start()
        try:
            running = await _make_task(lock, item_codec, blocked_fetch, identifier=1)
            assert await dispatcher.submit(running) is True
            # Let the only worker take the first task
            await asyncio.sleep(0.01)

            queued = await _make_task(lock, item_codec, blocked_fetch, identifier=2)
            assert await dispatcher.submit(queued) is True

            dropped = await _make_task(lock, item_codec, blocked_fetch, identifier=3)
            assert await dispatcher.submit(dropped) is False
            assert await redis_client.exists("lock:item:3") == 0
            assert dispatcher.get_stats()["dropped"] == 1
        finally:
            gate.set()
            await dispatcher.stop(graceful_timeout=5)

        assert dispatcher.get_stats()["completed"] == 2

    @pytest.mark.asyncio
    async def test_queue_policy_accepts_beyond_pool_size(
        self, cache_store, lock, item_codec
    ):
        dispatcher = RebuildDispatcher(
            cache_store, lock, pool_size=1, overflow_policy=OverflowPolicy.QUEUE
        )
        async with dispatcher:
            for identifier in range(1, 6):
                task = await _make_task(
                    lock, item_codec, _returning(Item(id=identifier, name="x")), identifier
                )
                assert await dispatcher.submit(task) is True
            await dispatcher.join()

        stats = dispatcher.get_stats()
        assert stats["completed"] == 5
        assert stats["dropped"] == 0


class TestLifecycle:
    """Explicit start and stop."""

    @pytest.mark.asyncio
    async def test_submit_before_start_is_rejected(
        self, cache_store, lock, item_codec, redis_client
    ):
        dispatcher = RebuildDispatcher(cache_store, lock, pool_size=1)
        task = await _make_task(lock, item_codec, _returning(Item(id=1, name="a")))

        assert await dispatcher.submit(task) is False
        assert dispatcher.get_stats()["rejected"] == 1
        assert await redis_client.exists("lock:item:1") == 0

    @pytest.mark.asyncio
    async def test_stop_drains_queued_work(self, cache_store, lock, item_codec, redis_client):
        async def slow_fetch():
            await asyncio.sleep(0.02)
            return Item(id=1, name="slow")

        dispatcher = RebuildDispatcher(cache_store, lock, pool_size=1)
        await dispatcher.start()
        for identifier in (1, 2, 3):
            await dispatcher.submit(
                await _make_task(lock, item_codec, slow_fetch, identifier)
            )

        await dispatcher.stop(graceful_timeout=5)

        assert not dispatcher.is_running
        assert dispatcher.get_stats()["completed"] == 3
        for identifier in (1, 2, 3):
            assert await redis_client.exists(f"item:{identifier}") == 1

    @pytest.mark.asyncio
    async def test_submit_after_stop_is_rejected(self, cache_store, lock, item_codec):
        dispatcher = RebuildDispatcher(cache_store, lock, pool_size=1)
        await dispatcher.start()
        await dispatcher.stop()

        task = await _make_task(lock, item_codec, _returning(Item(id=1, name="a")))

        assert await dispatcher.submit(task) is False

    @pytest.mark.asyncio
    async def test_restart_after_stop_raises(self, cache_store, lock):
        dispatcher = RebuildDispatcher(cache_store, lock, pool_size=1)
        await dispatcher.start()
        await dispatcher.stop()

        with pytest.raises(RebuildDispatcherClosedException):
            await dispatcher.start()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, cache_store, lock):
        dispatcher = RebuildDispatcher(cache_store, lock, pool_size=2)
        async with dispatcher:
            await dispatcher.start()
            assert dispatcher.get_stats()["pool_size"] == 2
            assert dispatcher.is_running

        assert not dispatcher.is_running
