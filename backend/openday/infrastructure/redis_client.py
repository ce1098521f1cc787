"""
Redis connection for the shared capacity cache.
Separated from business logic for clean architecture.
"""

from typing import Optional

import redis.asyncio as redis

from openday.core.logging import get_logger

logger = get_logger(__name__)


async def create_redis(url: str) -> Optional[redis.Redis]:
    """Open and ping a Redis connection. Returns None if Redis is unreachable."""
    client = redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("redis_connection_failed", url=url, error=str(e))
        await client.aclose()
        return None

    logger.info("redis_connected", url=url)
    return client
