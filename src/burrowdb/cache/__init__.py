"""Cache adapters."""

from burrowdb.cache.base import CacheBackend, CacheProvider, MemoryCache, MemoryCacheProvider
from burrowdb.cache.entity_cache import EntityCache

__all__ = [
    "CacheBackend",
    "CacheProvider",
    "EntityCache",
    "MemoryCache",
    "MemoryCacheProvider",
]
