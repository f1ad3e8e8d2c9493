"""
Shop Repositories

SQLAlchemy-backed system of record for shops and shop types.
Each call opens its own session from the factory, so the same repository
serves request handlers and background cache rebuilds.
"""

import time
from typing import List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...domain.cache.repository_interfaces import BackingStore
from ...domain.shop.entities import Shop, ShopType
from ...models import ShopModel, ShopTypeModel

logger = structlog.get_logger()


class SqlAlchemyShopRepository(BackingStore[int, Shop]):
    """Shop table access."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch(self, identifier: int) -> Optional[Shop]:
        """Load a shop by primary key, or None if it does not exist."""
        start_time = time.time()

        async with self.session_factory() as session:
            row = await session.get(ShopModel, identifier)

        logger.debug(
            "Shop fetched from database",
            shop_id=identifier,
            found=row is not None,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return Shop.model_validate(row) if row is not None else None

    async def persist(self, record: Shop) -> None:
        """Update the shop row with every field set on the record."""
        if record.id is None:
            raise ValueError("Shop id is required for update")

        values = record.model_dump(
            exclude={"id", "create_time", "update_time"}, exclude_none=True
        )

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(ShopModel).where(ShopModel.id == record.id).values(**values)
                )

        if result.rowcount == 0:
            logger.warning("Shop update matched no rows", shop_id=record.id)
        else:
            logger.info(
                "Shop updated", shop_id=record.id, updated_fields=sorted(values.keys())
            )


class SqlAlchemyShopTypeRepository:
    """Shop type table access."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_all(self) -> List[ShopType]:
        """All shop types ordered by their display position."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ShopTypeModel).order_by(ShopTypeModel.sort.asc())
            )
            rows = result.scalars().all()

        return [ShopType.model_validate(row) for row in rows]
