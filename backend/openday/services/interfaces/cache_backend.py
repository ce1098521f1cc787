"""
Capacity cache storage interface.
Allows swapping between an in-process store and Redis.
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheBackend(ABC):
    """
    Interface for capacity cache storage.

    Implementations:
    - MemoryCacheBackend: per-process dict with TTLs
    - RedisCacheBackend: shared across workers

    Values are small non-negative integers (capacities and counts).
    Backends never raise on infrastructure failure: a failed read is a miss.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[int]:
        """
        Return the cached value, or None when absent or expired.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: int, ttl: float) -> None:
        """
        Store a value for `ttl` seconds.
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """
        Drop keys. Deleting a missing key is not an error.
        """
        pass

    async def stats(self) -> dict:
        return {"status": "ok"}

    async def close(self) -> None:
        pass
