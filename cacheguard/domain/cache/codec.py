"""
Cache Entry Codec

Typed (de)serialization between domain values and the cache store's byte format.
One codec is built per key namespace, so decoding never inspects types at runtime.
"""

from typing import Generic, Optional, Type, TypeVar, Union

from pydantic import TypeAdapter, ValidationError

from .entities import TOMBSTONE, CacheEntry, Tombstone
from .exceptions import CacheDecodeException
from .value_objects import TTL

V = TypeVar("V")

# Blank payloads are reserved: no JSON document encodes to an empty string.
TOMBSTONE_PAYLOAD = b""


def is_tombstone(raw: Union[bytes, str]) -> bool:
    """Check whether a raw cache payload is the tombstone marker."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return raw.strip() == TOMBSTONE_PAYLOAD


class CacheCodec(Generic[V]):
    """
    JSON codec for one value type.

    Every strategy stores the ``CacheEntry`` envelope, so one key can be read
    by any of them. Pass-through and mutex entries carry no logical expiry.
    ``encode_value``/``decode_value`` handle bare values.
    """

    def __init__(self, value_type: Type[V]):
        self.value_type = value_type
        self._value_adapter: TypeAdapter = TypeAdapter(value_type)
        self._entry_type: Type[CacheEntry] = CacheEntry[value_type]  # type: ignore[valid-type]

    def encode_value(self, value: V) -> bytes:
        return self._value_adapter.dump_json(value)

    def decode_value(
        self, raw: Union[bytes, str], key: Optional[str] = None
    ) -> Union[V, Tombstone]:
        """Decode a plain value, or return TOMBSTONE for a negative-lookup marker."""
        if is_tombstone(raw):
            return TOMBSTONE
        try:
            return self._value_adapter.validate_json(raw)
        except ValidationError as e:
            raise CacheDecodeException(key=key, original_error=e) from e

    def plain(self, value: V) -> CacheEntry[V]:
        """Wrap a value in an entry with no logical expiry."""
        return self._entry_type(value=value)

    def wrap(self, value: V, ttl: TTL) -> CacheEntry[V]:
        """Wrap a value in an entry whose logical expiry is ``ttl`` from now."""
        return self._entry_type.with_logical_expire(value, ttl)

    def encode_entry(self, entry: CacheEntry[V]) -> bytes:
        return entry.model_dump_json().encode("utf-8")

    def decode_entry(
        self, raw: Union[bytes, str], key: Optional[str] = None
    ) -> Union[CacheEntry[V], Tombstone]:
        """Decode a logical-expiry envelope, or return TOMBSTONE."""
        if is_tombstone(raw):
            return TOMBSTONE
        try:
            return self._entry_type.model_validate_json(raw)
        except ValidationError as e:
            raise CacheDecodeException(key=key, original_error=e) from e

    def __repr__(self) -> str:
        return f"CacheCodec({getattr(self.value_type, '__name__', self.value_type)!r})"

