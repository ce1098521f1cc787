"""
In-process cache backend - no external dependencies.
"""

import time
from typing import Callable, Optional

from openday.services.interfaces.cache_backend import CacheBackend


class MemoryCacheBackend(CacheBackend):
    """
    Dict-backed cache with per-entry expiry.

    Use when:
    - A single worker process serves all traffic
    - Tests and local development

    Not shared across processes; with several workers each one caches
    independently and only its own writes invalidate it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[int, float]] = {}
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[int]:
        entry = self._data.get(key)
        if entry is None:
            self._misses += 1
            return None

        value, expires_at = entry
        if expires_at <= self._clock():
            # Expired entries are dropped lazily on read
            self._data.pop(key, None)
            self._misses += 1
            return None

        self._hits += 1
        return value

    async def set(self, key: str, value: int, ttl: float) -> None:
        self._data[key] = (value, self._clock() + ttl)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "status": "memory",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / max(total, 1) * 100, 2),
            "keys": len(self._data),
        }
