"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import create_redis
from .redis_cache import RedisCacheBackend

__all__ = ['create_redis', 'RedisCacheBackend']
