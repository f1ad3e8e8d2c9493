"""
Cache Domain Entities

Core domain entities for the read-through cache following DDD principles.
Encapsulates the logical-expiry envelope, the tombstone marker and lock handles.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from ...constants import get_current_timestamp
from .value_objects import TTL, CacheKey

V = TypeVar("V")


class Tombstone(Enum):
    """Marker for a confirmed negative lookup in the backing store."""

    TOMBSTONE = "tombstone"

    def __repr__(self) -> str:
        return "TOMBSTONE"


TOMBSTONE = Tombstone.TOMBSTONE


class CacheEntry(BaseModel, Generic[V]):
    """
    Cached value with an optional logical expiry timestamp.

    When ``logical_expire_at`` is None the entry's freshness is governed by the
    physical TTL of the cache store. When set, the entry is stale once the
    current time reaches it, even though the key is still present.
    """

    value: V
    logical_expire_at: Optional[datetime] = Field(
        default=None, description="Application-level expiry (UTC)"
    )

    @classmethod
    def with_logical_expire(
        cls, value: V, ttl: TTL, now: Optional[datetime] = None
    ) -> "CacheEntry[V]":
        """Wrap a value with a fresh logical expiry window."""
        now = now or get_current_timestamp()
        return cls(value=value, logical_expire_at=now + ttl.as_timedelta())

    def is_logically_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the logical expiry has been reached."""
        if self.logical_expire_at is None:
            return False
        return (now or get_current_timestamp()) >= self.logical_expire_at


@dataclass(frozen=True)
class LockHandle:
    """
    Proof of lock ownership.

    The token is stored as the lock key's value; release only succeeds while
    the stored value still matches it.
    """

    key: CacheKey
    ttl: TTL
    token: str
