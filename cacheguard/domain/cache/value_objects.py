"""
Cache Value Objects

Immutable value objects for cache domain following DDD principles.
Provides type safety and validation for keys, TTLs and per-call-site policies.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...constants import LOGICAL_EXPIRE_SECONDS


class ReadStrategy(str, Enum):
    """Read algorithms available to a call site."""

    PASS_THROUGH = "pass_through"
    MUTEX = "mutex"
    LOGICAL_EXPIRE = "logical_expire"


class OverflowPolicy(str, Enum):
    """What the rebuild dispatcher does with work it cannot start immediately."""

    QUEUE = "queue"
    DROP = "drop"


class TimeUnit(str, Enum):
    """Units accepted when building a TTL."""

    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


_UNIT_MILLISECONDS = {
    TimeUnit.MILLISECONDS: 1,
    TimeUnit.SECONDS: 1000,
    TimeUnit.MINUTES: 60_000,
    TimeUnit.HOURS: 3_600_000,
    TimeUnit.DAYS: 86_400_000,
}


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Enforces key naming conventions and provides validation.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > 250:
            raise ValueError("Cache key too long (max 250 characters)")

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @classmethod
    def for_id(cls, prefix: str, identifier: Any) -> "CacheKey":
        """Create a key from a namespace prefix and an identifier."""
        return cls(f"{prefix}{identifier}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Stored in milliseconds so lock windows and retry budgets can be sub-second.
    """

    milliseconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.milliseconds <= 0:
            raise ValueError("TTL must be positive")
        if self.milliseconds > 86_400_000 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def of(cls, amount: int, unit: TimeUnit = TimeUnit.SECONDS) -> "TTL":
        """Create TTL from an amount and a unit."""
        return cls(int(amount * _UNIT_MILLISECONDS[TimeUnit(unit)]))

    @classmethod
    def from_seconds(cls, seconds: float) -> "TTL":
        """Create TTL from seconds."""
        return cls(int(seconds * 1000))

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls.of(minutes, TimeUnit.MINUTES)

    @property
    def seconds(self) -> float:
        return self.milliseconds / 1000

    def as_timedelta(self) -> timedelta:
        return timedelta(milliseconds=self.milliseconds)

    def __str__(self) -> str:
        return f"{self.milliseconds}ms"


class CachePolicy(BaseModel):
    """
    Per-call-site cache configuration.

    Bundles the key namespace and every timing knob a read strategy needs,
    so two namespaces can run with different TTLs against the same client.
    """

    model_config = ConfigDict(frozen=True)

    key_prefix: str = Field(..., min_length=1, description="Cache key namespace")
    lock_prefix: str = Field(..., min_length=1, description="Lock key namespace")
    ttl: TTL = Field(..., description="Physical TTL or logical expiry window")
    null_ttl: TTL = Field(..., description="TTL of tombstones")
    lock_ttl: TTL = Field(..., description="Safety TTL of the rebuild lock")
    logical_ttl: TTL = Field(
        default=TTL.of(LOGICAL_EXPIRE_SECONDS, TimeUnit.SECONDS),
        description="Logical expiry window written by warm-ups and rebuilds",
    )
    retry_interval_ms: int = Field(
        default=50, ge=1, description="Sleep between mutex attempts"
    )
    max_lock_attempts: int = Field(
        default=200, ge=1, description="Upper bound on mutex attempts"
    )

    @classmethod
    def from_settings(
        cls,
        key_prefix: str,
        lock_prefix: str,
        settings: Optional[Any] = None,
        ttl: Optional[TTL] = None,
    ) -> "CachePolicy":
        """Build a policy from application settings, overriding the TTL if given."""
        if settings is None:
            from ...core.config import get_settings

            settings = get_settings()

        return cls(
            key_prefix=key_prefix,
            lock_prefix=lock_prefix,
            ttl=ttl or TTL.minutes(settings.CACHE_TTL_MINUTES),
            null_ttl=TTL.minutes(settings.CACHE_NULL_TTL_MINUTES),
            lock_ttl=TTL.of(settings.LOCK_TTL_SECONDS, TimeUnit.SECONDS),
            logical_ttl=TTL.of(settings.LOGICAL_EXPIRE_SECONDS, TimeUnit.SECONDS),
            retry_interval_ms=settings.MUTEX_RETRY_INTERVAL_MS,
            max_lock_attempts=settings.MUTEX_MAX_ATTEMPTS,
        )

    def cache_key(self, identifier: Any) -> CacheKey:
        return CacheKey.for_id(self.key_prefix, identifier)

    def lock_key(self, identifier: Any) -> CacheKey:
        return CacheKey.for_id(self.lock_prefix, identifier)

    @property
    def namespace(self) -> str:
        """Prefix without trailing separator, used as a metrics label."""
        return self.key_prefix.rstrip(":")
