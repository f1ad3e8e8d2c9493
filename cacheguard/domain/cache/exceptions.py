"""
Cache Domain Exceptions

Error taxonomy for the read-through cache.
Lock contention is handled internally and never raised; everything here reaches the caller.
"""

from typing import Any, Dict, Optional


class CacheException(Exception):
    """Base exception for cache layer errors.

    Preserves an error code and structured details for the API layer.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CacheDecodeException(CacheException):
    """Raised when a cached payload cannot be decoded into the namespace's type."""

    def __init__(
        self, key: Optional[str] = None, original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message=f"Failed to decode cached payload{f' for {key}' if key else ''}",
            error_code="CACHE_DECODE_ERROR",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error


class BackingStoreException(CacheException):
    """Raised when the backing store fetch or persist fails."""

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Backing store {operation} failed{f' for {key}' if key else ''}",
            error_code="BACKING_STORE_ERROR",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error


class LockAcquireTimeoutException(CacheException):
    """Raised when the mutex strategy gives up waiting for a rebuild lock."""

    def __init__(self, lock_key: str, attempts: int, waited_seconds: float):
        super().__init__(
            message=(
                f"Could not acquire lock {lock_key} after {attempts} attempts "
                f"({waited_seconds:.2f}s)"
            ),
            error_code="CACHE_LOCK_TIMEOUT",
            details={
                "lock_key": lock_key,
                "attempts": attempts,
                "waited_seconds": round(waited_seconds, 3),
            },
        )


class RebuildDispatcherClosedException(CacheException):
    """Raised when the rebuild dispatcher is used outside its running lifetime."""

    def __init__(self, message: str = "Rebuild dispatcher is not running"):
        super().__init__(message=message, error_code="REBUILD_DISPATCHER_CLOSED")
