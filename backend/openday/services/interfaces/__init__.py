"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .cache_backend import CacheBackend
from .memory_cache_backend import MemoryCacheBackend

__all__ = ['CacheBackend', 'MemoryCacheBackend']
