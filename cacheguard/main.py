"""
Cacheguard - Main FastAPI Application

Wires the read-through cache to Redis and the SQL backing store:
- Redis connection factory and cache store
- Rebuild dispatcher lifecycle tied to the application lifespan
- Shop and shop type services
- Error mapping for cache and backing store failures
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .constants import APP_NAME, APP_VERSION
from .core.config import get_settings
from .db import close_database, get_session_factory
from .domain.cache.exceptions import (
    BackingStoreException,
    CacheException,
    LockAcquireTimeoutException,
)
from .infrastructure.redis.connection_factory import redis_connection_factory
from .infrastructure.redis.exceptions import RedisException
from .infrastructure.repositories.cache_repository import RedisCacheStore
from .infrastructure.repositories.shop_repository import (
    SqlAlchemyShopRepository,
    SqlAlchemyShopTypeRepository,
)
from .services.cache.cache_client import CacheClient
from .services.cache.lock import DistributedLock
from .services.cache.rebuild_dispatcher import RebuildDispatcher
from .services.shop.shop_service import ShopService, ShopTypeService
from .api.endpoints.shops import router as shops_router

logger = structlog.get_logger()
settings = get_settings()


# Application lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start Redis, the rebuild pool and services; drain and close on shutdown."""
    logger.info("Starting Cacheguard API", environment=settings.ENVIRONMENT)

    redis_client = await redis_connection_factory.get_client()
    cache_store = RedisCacheStore(redis_client)
    lock = DistributedLock(cache_store)
    dispatcher = RebuildDispatcher(cache_store, lock)
    await dispatcher.start()

    cache_client = CacheClient(cache_store, dispatcher, lock)
    session_factory = get_session_factory()

    app.state.dispatcher = dispatcher
    app.state.shop_service = ShopService(
        cache_client, SqlAlchemyShopRepository(session_factory)
    )
    app.state.shop_type_service = ShopTypeService(
        cache_client, SqlAlchemyShopTypeRepository(session_factory)
    )

    logger.info(
        "Cacheguard API started",
        version=APP_VERSION,
        rebuild_pool_size=dispatcher.pool_size,
    )

    try:
        yield
    finally:
        logger.info("Shutting down Cacheguard API")
        await dispatcher.stop()
        await redis_connection_factory.close()
        await close_database()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.include_router(shops_router, tags=["shops"])


def _error_body(error: Any) -> Dict[str, Any]:
    return {
        "error": error.error_code,
        "message": error.message,
        "details": error.details,
    }


@app.exception_handler(LockAcquireTimeoutException)
async def lock_timeout_handler(request: Request, exc: LockAcquireTimeoutException):
    return JSONResponse(status_code=503, content=_error_body(exc))


@app.exception_handler(BackingStoreException)
async def backing_store_handler(request: Request, exc: BackingStoreException):
    logger.error("Backing store failure", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=502, content=_error_body(exc))


@app.exception_handler(CacheException)
async def cache_error_handler(request: Request, exc: CacheException):
    logger.error("Cache failure", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=500, content=_error_body(exc))


@app.exception_handler(RedisException)
async def redis_error_handler(request: Request, exc: RedisException):
    logger.error("Cache store unavailable", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=503, content=_error_body(exc))


@app.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Cache store and rebuild pool status."""
    redis_health = await redis_connection_factory.health_check()
    return {
        "status": redis_health["status"],
        "redis": redis_health,
        "rebuild_dispatcher": request.app.state.dispatcher.get_stats(),
    }
