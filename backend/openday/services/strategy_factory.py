"""
Cache backend factory.
Configures which capacity cache storage to use.
"""

from openday.core.config import Settings
from openday.core.logging import get_logger
from openday.infrastructure.redis_cache import RedisCacheBackend
from openday.infrastructure.redis_client import create_redis
from openday.services.interfaces.cache_backend import CacheBackend
from openday.services.interfaces.memory_cache_backend import MemoryCacheBackend

logger = get_logger(__name__)


async def build_cache_backend(settings: Settings) -> CacheBackend:
    """
    Get configured cache backend.

    Backend selection via CACHE_BACKEND:
    - memory: MemoryCacheBackend (single worker, tests)
    - redis: RedisCacheBackend (several workers)

    If Redis is configured but unreachable we fall back to memory: the cache
    is advisory, so a degraded cache beats refusing to start.
    """
    if settings.CACHE_BACKEND == "redis":
        client = await create_redis(settings.REDIS_URL)
        if client is not None:
            return RedisCacheBackend(client)
        logger.warning("redis_unavailable", message="Falling back to in-process cache")
    return MemoryCacheBackend()
