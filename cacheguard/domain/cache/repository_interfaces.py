"""
Cache Repository Interfaces

Abstract repository interfaces following DDD Repository pattern.
Defines the contracts of the two collaborators the cache layer coordinates.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from .value_objects import TTL, CacheKey

ID = TypeVar("ID")
V = TypeVar("V")


class CacheStore(ABC):
    """
    Abstract remote key-value cache.

    Values are opaque bytes. Implementations must make ``set_if_absent`` and
    ``delete_if_equals`` atomic with respect to every other client.
    """

    @abstractmethod
    async def get(self, key: CacheKey) -> Optional[bytes]:
        """Get raw value, or None if the key is missing."""
        pass

    @abstractmethod
    async def set(self, key: CacheKey, value: bytes, ttl: Optional[TTL] = None) -> None:
        """Store value, with a physical TTL if given."""
        pass

    @abstractmethod
    async def set_if_absent(self, key: CacheKey, value: bytes, ttl: TTL) -> bool:
        """Store value only if the key does not exist. Returns True if stored."""
        pass

    @abstractmethod
    async def delete(self, key: CacheKey) -> bool:
        """Delete key. Returns True if a key was removed."""
        pass

    @abstractmethod
    async def delete_if_equals(self, key: CacheKey, expected: bytes) -> bool:
        """Delete key only while its value equals ``expected``."""
        pass

    @abstractmethod
    async def expire(self, key: CacheKey, ttl: TTL) -> bool:
        """Refresh the physical TTL of an existing key."""
        pass

    @abstractmethod
    async def get_ttl(self, key: CacheKey) -> Optional[int]:
        """Remaining TTL in milliseconds, or None if the key is missing or persistent."""
        pass


class BackingStore(ABC, Generic[ID, V]):
    """
    Abstract system of record.

    ``fetch`` is a pure read returning None when no record exists.
    """

    @abstractmethod
    async def fetch(self, identifier: ID) -> Optional[V]:
        """Read the authoritative record."""
        pass

    @abstractmethod
    async def persist(self, record: V) -> None:
        """Write the record."""
        pass
