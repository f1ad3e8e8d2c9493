"""
Shop API endpoints

HTTP surface over the cached shop services:
- Shop lookup by ID through the configured read strategy
- Shop update with cache eviction
- Shop type list
- Cache warm-up for logically expiring entries
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from ...domain.cache.value_objects import ReadStrategy
from ...domain.shop.entities import Shop, ShopType
from ...services.shop.shop_service import ShopService, ShopTypeService

logger = structlog.get_logger()
router = APIRouter()


class UpdateResult(BaseModel):
    """Acknowledgement for write operations."""

    success: bool = True
    shop_id: int


def get_shop_service(request: Request) -> ShopService:
    return request.app.state.shop_service


def get_shop_type_service(request: Request) -> ShopTypeService:
    return request.app.state.shop_type_service


@router.get("/shop/{shop_id}", response_model=Shop)
async def query_shop_by_id(
    shop_id: int,
    strategy: Optional[ReadStrategy] = Query(
        None, description="Override the default read strategy"
    ),
    service: ShopService = Depends(get_shop_service),
) -> Shop:
    """Get a shop by ID."""
    shop = await service.query_by_id(shop_id, strategy)
    if shop is None:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop


@router.put("/shop", response_model=UpdateResult)
async def update_shop(
    shop: Shop, service: ShopService = Depends(get_shop_service)
) -> UpdateResult:
    """Update a shop and evict its cache entry."""
    if shop.id is None:
        raise HTTPException(status_code=400, detail="Shop id is required")

    await service.update(shop)
    return UpdateResult(shop_id=shop.id)


@router.post("/shop/{shop_id}/warm", response_model=UpdateResult)
async def warm_shop_cache(
    shop_id: int,
    expire_seconds: Optional[int] = Query(None, ge=1),
    service: ShopService = Depends(get_shop_service),
) -> UpdateResult:
    """Provision a shop entry with a logical expiry."""
    if not await service.save_shop_to_cache(shop_id, expire_seconds):
        raise HTTPException(status_code=404, detail="Shop not found")

    logger.info("Shop cache warm-up requested", shop_id=shop_id)
    return UpdateResult(shop_id=shop_id)


@router.get("/shop-type/list", response_model=List[ShopType])
async def query_shop_type_list(
    service: ShopTypeService = Depends(get_shop_type_service),
) -> List[ShopType]:
    """List shop types ordered by sort position."""
    return await service.query_type_list()
