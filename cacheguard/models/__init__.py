"""
Cacheguard Database Models

SQLAlchemy models for the backing store tables.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, Float
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class TimestampMixin:
    """Mixin for timestamp fields."""

    create_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    update_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ShopModel(Base, TimestampMixin):
    """Shop table."""

    __tablename__ = "tb_shop"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    type_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    images: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    area: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    x: Mapped[float] = mapped_column(Float, nullable=False)
    y: Mapped[float] = mapped_column(Float, nullable=False)
    avg_price: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_hours: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    def __repr__(self):
        return f"<Shop(id={self.id}, name='{self.name}')>"


class ShopTypeModel(Base, TimestampMixin):
    """Shop type table."""

    __tablename__ = "tb_shop_type"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(32), nullable=False)
    icon: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ShopType(id={self.id}, name='{self.name}')>"
