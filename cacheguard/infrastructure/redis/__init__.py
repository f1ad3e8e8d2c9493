"""
Redis Infrastructure Module

Redis connection management and exception types for the cache store.
"""

from .connection_factory import RedisConnectionFactory, redis_connection_factory
from .exceptions import (
    RedisException,
    RedisConnectionException,
    RedisOperationTimeoutException,
    RedisConfigurationException,
)

__all__ = [
    # Connection management
    "RedisConnectionFactory",
    "redis_connection_factory",
    # Exceptions
    "RedisException",
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "RedisConfigurationException",
]
