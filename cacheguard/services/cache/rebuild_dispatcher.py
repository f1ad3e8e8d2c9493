"""
Rebuild Dispatcher

Bounded worker pool that refreshes cache entries off the request path.
Each task fetches from the backing store, writes the refreshed entry and
always releases its rebuild lock, whether the rebuild succeeded or not.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID, uuid4

from opentelemetry import trace

from ...constants import get_current_timestamp
from ...core.config import settings
from ...domain.cache.codec import TOMBSTONE_PAYLOAD, CacheCodec
from ...domain.cache.entities import LockHandle
from ...domain.cache.exceptions import RebuildDispatcherClosedException
from ...domain.cache.repository_interfaces import CacheStore
from ...domain.cache.value_objects import TTL, CacheKey, OverflowPolicy
from ...monitoring.cache_metrics import (
    rebuild_queue_depth,
    rebuild_tasks_total,
    record_fetch,
)
from .lock import DistributedLock

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class RebuildTask:
    """Work item describing one cache entry refresh."""

    key: CacheKey
    fetch: Callable[[], Awaitable[Optional[Any]]]
    codec: CacheCodec
    ttl: TTL
    lock: LockHandle
    logical_expire: bool = True
    null_ttl: Optional[TTL] = None
    namespace: str = "default"
    task_id: UUID = field(default_factory=uuid4)
    submitted_at: datetime = field(default_factory=get_current_timestamp)


class RebuildDispatcher:
    """
    Fixed-size pool of asyncio workers consuming rebuild tasks.

    The dispatcher is an explicitly owned resource: it accepts work only
    between ``start()`` and ``stop()``, and ``stop()`` drains queued and
    in-flight rebuilds before cancelling the workers.
    """

    def __init__(
        self,
        cache_store: CacheStore,
        lock: Optional[DistributedLock] = None,
        pool_size: Optional[int] = None,
        queue_capacity: Optional[int] = None,
        overflow_policy: Optional[OverflowPolicy] = None,
        name: str = "cache-rebuild",
    ):
        """
        Initialize rebuild dispatcher.

        Args:
            cache_store: Store the refreshed entries are written to
            lock: Lock used to release per-key rebuild locks
            pool_size: Number of concurrent rebuild workers
            queue_capacity: Pending task limit under the drop policy
            overflow_policy: Queue or drop work when every worker is busy
            name: Pool name for logs
        """
        self.cache_store = cache_store
        self.lock = lock or DistributedLock(cache_store)
        self.pool_size = pool_size or settings.REBUILD_POOL_SIZE
        self.queue_capacity = queue_capacity or settings.REBUILD_QUEUE_CAPACITY
        self.overflow_policy = OverflowPolicy(
            overflow_policy or settings.REBUILD_OVERFLOW_POLICY
        )
        self.name = name

        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._closed = False
        self._stats: Dict[str, Any] = {
            "submitted": 0,
            "completed": 0,
            "failed": 0,
            "dropped": 0,
            "rejected": 0,
            "start_time": None,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker pool."""
        if self._running:
            return
        if self._closed:
            raise RebuildDispatcherClosedException(
                f"Rebuild dispatcher {self.name} was stopped and cannot be restarted"
            )

        maxsize = (
            self.queue_capacity if self.overflow_policy == OverflowPolicy.DROP else 0
        )
        self._queue = asyncio.Queue(maxsize=maxsize)
        self._workers = [
            asyncio.create_task(self._worker_loop(f"{self.name}-{i}"))
            for i in range(self.pool_size)
        ]
        self._running = True
        self._stats["start_time"] = get_current_timestamp()

        logger.info(
            f"Rebuild dispatcher {self.name} started with {self.pool_size} workers",
            extra={
                "pool_size": self.pool_size,
                "overflow_policy": self.overflow_policy.value,
            },
        )

    async def submit(self, task: RebuildTask) -> bool:
        """
        Hand a rebuild to the pool without waiting for it.

        Returns:
            True if the task was accepted. A rejected task releases its lock
            immediately so the next stale reader can try again.
        """
        if not self._running:
            self._stats["rejected"] += 1
            rebuild_tasks_total.labels(outcome="rejected").inc()
            logger.warning(
                f"Rebuild for {task.key} rejected, dispatcher {self.name} is not running"
            )
            await self._release(task.lock)
            return False

        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            rebuild_tasks_total.labels(outcome="dropped").inc()
            logger.info(
                f"Rebuild for {task.key} dropped, dispatcher {self.name} is saturated",
                extra={"queue_capacity": self.queue_capacity},
            )
            await self._release(task.lock)
            return False

        self._stats["submitted"] += 1
        rebuild_queue_depth.set(self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every accepted task has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, graceful_timeout: float = 30.0) -> None:
        """
        Stop accepting work, drain the queue and shut the workers down.

        Args:
            graceful_timeout: Seconds to wait for queued and in-flight rebuilds
        """
        if not self._running:
            return

        logger.info(f"Stopping rebuild dispatcher {self.name}")
        self._running = False
        self._closed = True

        try:
            await asyncio.wait_for(self._queue.join(), timeout=graceful_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Rebuild dispatcher {self.name} shutdown timeout, "
                f"{self._queue.qsize()} tasks still queued"
            )

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # Tasks that never ran still hold their locks
        while not self._queue.empty():
            task = self._queue.get_nowait()
            self._queue.task_done()
            await self._release(task.lock)

        rebuild_queue_depth.set(0)
        logger.info(
            f"Rebuild dispatcher {self.name} stopped",
            extra={"stats": self.get_stats()},
        )

    async def _worker_loop(self, worker_id: str) -> None:
        """Consume tasks until cancelled."""
        while True:
            task = await self._queue.get()
            try:
                await self._execute(task, worker_id)
            finally:
                self._queue.task_done()
                rebuild_queue_depth.set(self._queue.qsize())

    async def _execute(self, task: RebuildTask, worker_id: str) -> None:
        """Fetch, encode and write one entry, then release its lock."""
        with tracer.start_as_current_span("cache.rebuild") as span:
            span.set_attribute("cache.key", str(task.key))
            span.set_attribute("worker_id", worker_id)

            try:
                value = await task.fetch()
                record_fetch(task.namespace, "found" if value is not None else "absent")

                if value is None:
                    await self.cache_store.set(
                        task.key, TOMBSTONE_PAYLOAD, task.null_ttl or task.ttl
                    )
                elif task.logical_expire:
                    entry = task.codec.wrap(value, task.ttl)
                    await self.cache_store.set(task.key, task.codec.encode_entry(entry))
                else:
                    payload = task.codec.encode_entry(task.codec.plain(value))
                    await self.cache_store.set(task.key, payload, task.ttl)

                self._stats["completed"] += 1
                rebuild_tasks_total.labels(outcome="completed").inc()
                logger.debug(
                    f"Rebuilt cache entry {task.key}",
                    extra={"task_id": str(task.task_id), "worker_id": worker_id},
                )

            except Exception as e:
                # Stale entry stays visible; the next stale reader retries
                self._stats["failed"] += 1
                rebuild_tasks_total.labels(outcome="failed").inc()
                record_fetch(task.namespace, "error")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.exception(
                    f"Rebuild of {task.key} failed in {worker_id}: {e}",
                    extra={"task_id": str(task.task_id)},
                )

            finally:
                await self._release(task.lock)

    async def _release(self, handle: LockHandle) -> None:
        """Release a rebuild lock; on failure the lock TTL frees it instead."""
        try:
            await self.lock.release(handle)
        except Exception as e:
            logger.error(
                f"Failed to release rebuild lock {handle.key}: {e}",
                extra={"lock_key": str(handle.key), "ttl_ms": handle.ttl.milliseconds},
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "name": self.name,
            "running": self._running,
            "pool_size": self.pool_size,
            "overflow_policy": self.overflow_policy.value,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            **self._stats,
        }

    async def __aenter__(self) -> "RebuildDispatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
