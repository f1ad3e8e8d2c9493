"""
Redis Infrastructure Exceptions

Errors raised by the cache store when Redis cannot serve a command.
``main.py`` answers all of them with HTTP 503: the record may exist, but the
cache layer cannot coordinate readers without Redis, so no strategy falls
back to the backing store on its own.
"""

from typing import Any, Dict, Optional


class RedisException(Exception):
    """A cache store command failed.

    ``RedisCacheStore`` raises this for redis-py errors that are neither
    timeouts nor connection losses. The redis-py error is kept as
    ``__cause__`` and summarized in ``details``.
    """

    default_error_code = "REDIS_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = dict(details or {})
        if original_error is not None:
            self.details.setdefault("original_error", str(original_error))
            self.details.setdefault(
                "original_error_type", type(original_error).__name__
            )
            self.__cause__ = original_error
        super().__init__(self.message)


class RedisConnectionException(RedisException):
    """Redis was unreachable at startup ping or dropped mid-command."""

    default_error_code = "REDIS_CONNECTION_ERROR"

    def __init__(
        self,
        message: str = "Redis connection failed",
        host: Optional[str] = None,
        port: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        endpoint = {"host": host, "port": port}
        super().__init__(
            message=message,
            details={k: v for k, v in endpoint.items() if v},
            original_error=original_error,
        )


class RedisOperationTimeoutException(RedisException):
    """A cache store command exceeded REDIS_OPERATION_TIMEOUT."""

    default_error_code = "REDIS_TIMEOUT_ERROR"

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if key:
            details["key"] = key

        super().__init__(
            message=f"Cache store {operation} timed out",
            details=details,
            original_error=original_error,
        )


class RedisConfigurationException(RedisException):
    """REDIS_URL could not be turned into a connection pool."""

    default_error_code = "REDIS_CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message, details=details, original_error=original_error
        )
