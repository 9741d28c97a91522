"""
Read-through caching layer.

Provides:
- Cache key derivation from query descriptors
- Memory and Redis cache providers with per-bucket sub-caches
- QueryCache, the read-through coordinator with bucket invalidation

Usage:
    from querycache.cache import QueryCache, ResultSlot

    query_cache = QueryCache(database)
    total = query_cache.count(Order(status="active"), ttl=60)
"""

from querycache.cache.coordinator import MissHandler, QueryCache
from querycache.cache.entries import CachedEntry, ResultSlot, SubCache
from querycache.cache.keys import CacheKeyDescriptor, type_identity
from querycache.cache.providers import (
    CacheProvider,
    MemoryCacheProvider,
    RedisCacheProvider,
    create_provider,
)

__all__ = [
    "QueryCache",
    "MissHandler",
    "CachedEntry",
    "SubCache",
    "ResultSlot",
    "CacheKeyDescriptor",
    "type_identity",
    "CacheProvider",
    "MemoryCacheProvider",
    "RedisCacheProvider",
    "create_provider",
]
