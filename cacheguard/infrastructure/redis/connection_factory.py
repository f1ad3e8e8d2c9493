"""
Redis Connection Factory

Connection management for the shared cache store.
Provides a single connection pool, health checks and clean shutdown.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import (
    AuthenticationError as RedisAuthError,
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from opentelemetry.instrumentation.redis import RedisInstrumentor

from ...core.config import settings
from .exceptions import RedisConfigurationException, RedisConnectionException

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for the Redis client backing the cache store.

    Every process shares one pool; the cache layer never keeps coordination
    state in process memory, so any number of factories may point at one Redis.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or settings.REDIS_URL
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._initialized = False
        self._lock = asyncio.Lock()

        # Initialize OpenTelemetry instrumentation
        try:
            RedisInstrumentor().instrument()
            logger.info("Redis OpenTelemetry instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to enable Redis OpenTelemetry instrumentation: {e}")

    async def initialize(self) -> None:
        """Create the connection pool and verify connectivity."""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            parsed_url = urlparse(self._redis_url)
            try:
                # Raw bytes: the codec owns the payload format
                self._pool = ConnectionPool.from_url(
                    self._redis_url,
                    decode_responses=False,
                    socket_connect_timeout=settings.REDIS_CONNECTION_TIMEOUT,
                    socket_timeout=settings.REDIS_OPERATION_TIMEOUT,
                    retry_on_timeout=True,
                    max_connections=settings.REDIS_MAX_CONNECTIONS,
                )
            except ValueError as e:
                raise RedisConfigurationException(
                    message=f"Invalid Redis URL: {e}",
                    config_key="REDIS_URL",
                    config_value=self._redis_url,
                    original_error=e,
                )

            self._client = Redis(connection_pool=self._pool)
            await self._test_connection(parsed_url.hostname, parsed_url.port)

            self._initialized = True
            logger.info(
                "Redis connection factory initialized",
                extra={
                    "host": parsed_url.hostname or "localhost",
                    "port": parsed_url.port or 6379,
                    "max_connections": settings.REDIS_MAX_CONNECTIONS,
                },
            )

    async def _test_connection(self, host: Optional[str], port: Optional[int]) -> None:
        """Ping Redis once so misconfiguration fails at startup."""
        try:
            await self._client.ping()
            logger.debug("Redis connection test successful")
        except (RedisConnectionError, RedisAuthError, RedisTimeoutError) as e:
            raise RedisConnectionException(
                message="Redis connection test failed",
                host=host,
                port=port,
                original_error=e,
            )

    async def get_client(self) -> Redis:
        """Get the shared Redis client, initializing lazily."""
        await self.initialize()
        return self._client

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the Redis connection.

        Returns:
            Health status with ping latency
        """
        health_status: Dict[str, Any] = {
            "status": "unhealthy",
            "timestamp": time.time(),
        }

        if not self._initialized:
            health_status["error"] = "Redis connection factory not initialized"
            return health_status

        try:
            start_time = time.time()
            await self._client.ping()
            health_status["status"] = "healthy"
            health_status["response_time_ms"] = round(
                (time.time() - start_time) * 1000, 2
            )
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning(f"Redis health check failed: {e}")
            health_status["error"] = str(e)

        return health_status

    async def close(self) -> None:
        """Close the client and release pooled connections."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
            if self._pool is not None:
                await self._pool.disconnect()
                self._pool = None
            self._initialized = False

            logger.info("Redis connection factory closed")


# Global connection factory instance
redis_connection_factory = RedisConnectionFactory()
