"""
Shop Domain Entities

Records served through the read-through cache.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Shop(BaseModel):
    """Merchant record."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="Shop ID")
    name: str = Field(..., min_length=1, max_length=128)
    type_id: int = Field(..., ge=1, description="Shop type ID")
    images: str = Field("", description="Comma-separated image URLs")
    area: Optional[str] = None
    address: str = Field("", max_length=255)
    x: float = Field(..., description="Longitude")
    y: float = Field(..., description="Latitude")
    avg_price: Optional[int] = Field(None, ge=0)
    sold: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    score: int = Field(0, ge=0, le=50, description="Rating times ten")
    open_hours: Optional[str] = None
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None


class ShopType(BaseModel):
    """Shop category shown on the home page."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    icon: str = ""
    sort: int = 0
