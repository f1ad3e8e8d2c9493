"""
Repository Implementations

Redis cache store and SQLAlchemy backing store repositories.
"""

from .cache_repository import RedisCacheStore
from .shop_repository import SqlAlchemyShopRepository, SqlAlchemyShopTypeRepository

__all__ = [
    "RedisCacheStore",
    "SqlAlchemyShopRepository",
    "SqlAlchemyShopTypeRepository",
]
