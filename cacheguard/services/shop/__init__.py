"""
Shop Services

Business services for shops and shop types.
"""

from .shop_service import ShopService, ShopTypeService

__all__ = ["ShopService", "ShopTypeService"]
