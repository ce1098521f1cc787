"""
Redis-backed capacity cache.

Circuit breaker behaviour:
  On Redis failure, reads degrade to a miss and writes are dropped.
  The ledger stays authoritative - Redis is advisory only, so an outage
  costs extra ledger reads but never a wrong admission decision.
"""

from typing import Optional

import redis.asyncio as redis

from openday.services.interfaces.cache_backend import CacheBackend
from openday.core.logging import get_logger

logger = get_logger(__name__)


class RedisCacheBackend(CacheBackend):
    """
    Shared cache across worker processes.

    Use when:
    - Several API workers serve the same activities
    - Invalidation by one worker must be seen by the others
    """

    def __init__(self, client: redis.Redis, namespace: str = "openday") -> None:
        self.redis = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[int]:
        try:
            data = await self.redis.get(self._key(key))
        except redis.RedisError as e:
            logger.error("cache_get_error", key=key, error=str(e))
            return None
        return int(data) if data is not None else None

    async def set(self, key: str, value: int, ttl: float) -> None:
        try:
            await self.redis.set(self._key(key), value, px=max(int(ttl * 1000), 1))
        except redis.RedisError as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.redis.delete(*(self._key(k) for k in keys))
        except redis.RedisError as e:
            logger.error("cache_invalidation_error", keys=list(keys), error=str(e))

    async def stats(self) -> dict:
        """Redis keyspace statistics for monitoring."""
        try:
            info = await self.redis.info("stats")
        except redis.RedisError as e:
            return {"status": "error", "error": str(e)}

        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }

    async def close(self) -> None:
        await self.redis.aclose()
