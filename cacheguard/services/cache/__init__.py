"""
Cache Services

Read-through cache coordination: distributed lock, rebuild dispatcher and read strategies.
"""

from .lock import DistributedLock
from .rebuild_dispatcher import RebuildDispatcher, RebuildTask
from .cache_client import CacheClient

__all__ = [
    "DistributedLock",
    "RebuildDispatcher",
    "RebuildTask",
    "CacheClient",
]
