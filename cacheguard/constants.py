"""
Cacheguard Global Constants

Centralized location for key namespaces and default TTLs used across the application.
"""

from datetime import datetime, timezone

# Key namespaces
CACHE_SHOP_KEY = "cache:shop:"
LOCK_SHOP_KEY = "lock:shop:"
CACHE_SHOP_TYPE_KEY = "cache:shopType"
LOCK_SHOP_TYPE_KEY = "lock:shopType:"

# Default TTLs
CACHE_SHOP_TTL_MINUTES = 30
CACHE_NULL_TTL_MINUTES = 2
LOCK_SHOP_TTL_SECONDS = 10
LOGICAL_EXPIRE_SECONDS = 20

# Mutex strategy retry backoff
MUTEX_RETRY_INTERVAL_MS = 50


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp

    Note: All logical expiry comparisons read time from this function.
    """
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Cacheguard"
APP_VERSION = "0.1.0"
