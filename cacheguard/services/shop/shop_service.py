"""
Shop Services

Shop lookups served through the read-through cache, and the write path
that persists first and evicts the cached entry afterwards.
"""

from typing import List, Optional

import structlog

from ...constants import (
    CACHE_SHOP_KEY,
    CACHE_SHOP_TYPE_KEY,
    LOCK_SHOP_KEY,
    LOCK_SHOP_TYPE_KEY,
)
from ...domain.cache.codec import CacheCodec
from ...domain.cache.exceptions import BackingStoreException
from ...domain.cache.repository_interfaces import BackingStore
from ...domain.cache.value_objects import TTL, CachePolicy, ReadStrategy
from ...domain.shop.entities import Shop, ShopType
from ...infrastructure.repositories.shop_repository import SqlAlchemyShopTypeRepository
from ..cache.cache_client import CacheClient

logger = structlog.get_logger()


class ShopService:
    """Shop reads and writes with cache coordination."""

    def __init__(
        self,
        cache_client: CacheClient,
        repository: BackingStore[int, Shop],
        policy: Optional[CachePolicy] = None,
        read_strategy: ReadStrategy = ReadStrategy.MUTEX,
    ):
        self.cache_client = cache_client
        self.repository = repository
        self.policy = policy or CachePolicy.from_settings(CACHE_SHOP_KEY, LOCK_SHOP_KEY)
        self.read_strategy = read_strategy
        self.codec: CacheCodec[Shop] = CacheCodec(Shop)

    async def query_by_id(
        self, shop_id: int, strategy: Optional[ReadStrategy] = None
    ) -> Optional[Shop]:
        """
        Look up a shop through the cache.

        Args:
            shop_id: Shop ID
            strategy: Overrides the service's default read strategy

        Returns:
            The shop, or None if it does not exist (or, under logical
            expiration, has not been provisioned into the cache)
        """
        return await self.cache_client.query(
            strategy or self.read_strategy,
            self.policy,
            shop_id,
            self.repository.fetch,
            self.codec,
        )

    async def update(self, shop: Shop) -> None:
        """
        Persist a shop, then evict its cache entry.

        The cache is never written here; the next reader repopulates it.

        Raises:
            ValueError: If the shop has no id
            BackingStoreException: If the database write fails
        """
        if shop.id is None:
            raise ValueError("Shop id is required")

        try:
            await self.repository.persist(shop)
        except Exception as e:
            logger.error("Shop persist failed", shop_id=shop.id, error=str(e))
            raise BackingStoreException(
                "persist", key=str(self.policy.cache_key(shop.id)), original_error=e
            ) from e

        await self.cache_client.invalidate(self.policy, shop.id)
        logger.info("Shop cache invalidated after update", shop_id=shop.id)

    async def save_shop_to_cache(
        self, shop_id: int, expire_seconds: Optional[int] = None
    ) -> bool:
        """
        Provision a shop for the logical-expiration strategy.

        Args:
            shop_id: Shop ID
            expire_seconds: Logical expiry window (defaults to the policy's logical_ttl)

        Returns:
            True if the shop exists and was cached
        """
        shop = await self.repository.fetch(shop_id)
        if shop is None:
            logger.warning("Cannot warm cache for missing shop", shop_id=shop_id)
            return False

        ttl = (
            TTL.from_seconds(expire_seconds)
            if expire_seconds
            else self.policy.logical_ttl
        )
        entry = await self.cache_client.set_with_logical_expire(
            self.policy.cache_key(shop_id), shop, self.codec, ttl
        )
        logger.info(
            "Shop cache warmed",
            shop_id=shop_id,
            logical_expire_at=entry.logical_expire_at.isoformat(),
        )
        return True


class ShopTypeService:
    """Shop type list cached as a single entry."""

    def __init__(
        self,
        cache_client: CacheClient,
        repository: SqlAlchemyShopTypeRepository,
        policy: Optional[CachePolicy] = None,
    ):
        self.cache_client = cache_client
        self.repository = repository
        self.policy = policy or CachePolicy.from_settings(
            CACHE_SHOP_TYPE_KEY, LOCK_SHOP_TYPE_KEY
        )
        self.codec: CacheCodec[List[ShopType]] = CacheCodec(List[ShopType])

    async def query_type_list(self) -> List[ShopType]:
        """All shop types ordered by sort position; empty if none are configured."""
        shop_types = await self.cache_client.query_with_pass_through(
            self.policy, "", self._load, self.codec
        )
        return shop_types or []

    async def _load(self, _: str) -> Optional[List[ShopType]]:
        shop_types = await self.repository.list_all()
        return shop_types or None
