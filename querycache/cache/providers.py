"""
Cache providers.

A provider is a key-value store with get/set/delete and per-key TTL. The
query cache keeps one top-level provider and one sub-cache per bucket,
created through new_sub_cache() so a bucket lives in the same kind of
store as its parent.

Providers:
- MemoryCacheProvider: in-process dict, thread-safe
- RedisCacheProvider: Redis with connection pooling, pickled values
"""

import math
import pickle
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

import redis
from redis.exceptions import ConnectionError, TimeoutError

from querycache.cache.entries import SubCache
from querycache.config import Settings, get_settings
from querycache.logging import cache_logger as logger


@runtime_checkable
class CacheProvider(Protocol):
    """Key-value store contract used by the query cache."""

    def get(self, key: str) -> tuple[Any, bool]: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...

    def delete(self, key: str) -> None: ...

    def new_sub_cache(self) -> "CacheProvider": ...


class MemoryCacheProvider:
    """
    In-process cache with per-key expiry.

    Thread-safe implementation using a lock. A ttl of zero or less stores
    the value without expiry. Expired keys are dropped when read; there is
    no size bound.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> tuple[Any, bool]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None, False
            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None, False
            return value, True

    def set(self, key: str, value: Any, ttl: float) -> None:
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def new_sub_cache(self) -> "MemoryCacheProvider":
        return MemoryCacheProvider(clock=self._clock)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


@dataclass(frozen=True)
class _SubCacheMarker:
    """Stored in Redis in place of a SubCache; points at the child namespace."""

    namespace: str


class RedisCacheProvider:
    """
    Redis-backed provider.

    Keys are prefixed with the provider's namespace. Values are pickled.
    A SubCache is stored as a marker naming the child namespace and comes
    back as a SubCache over the same client. Deleting a bucket's marker
    leaves its keys to expire on their own TTL; a new sub-cache for the
    same bucket gets a fresh namespace, so stale keys are never read.

    Connection and timeout errors are logged and treated as a miss (get)
    or a no-op (set/delete). Values that cannot be pickled are not stored.
    """

    def __init__(self, client: "redis.Redis", namespace: str):
        self._client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> tuple[Any, bool]:
        try:
            data = self._client.get(self._key(key))
        except (ConnectionError, TimeoutError) as e:
            logger.debug("cache_get_error", key=key, error=str(e))
            return None, False

        if data is None:
            return None, False

        try:
            value = pickle.loads(data)
        except pickle.UnpicklingError as e:
            logger.debug("cache_unpickle_error", key=key, error=str(e))
            return None, False

        if isinstance(value, _SubCacheMarker):
            return SubCache(RedisCacheProvider(self._client, value.namespace)), True
        return value, True

    def set(self, key: str, value: Any, ttl: float) -> None:
        if isinstance(value, SubCache):
            if not isinstance(value.provider, RedisCacheProvider):
                raise TypeError("RedisCacheProvider can only hold Redis sub-caches")
            value = _SubCacheMarker(value.provider.namespace)

        try:
            serialized = pickle.dumps(value)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.debug("cache_set_error", key=key, error=str(e), reason="unserializable")
            return

        try:
            if ttl > 0:
                self._client.setex(self._key(key), max(1, math.ceil(ttl)), serialized)
            else:
                self._client.set(self._key(key), serialized)
        except (ConnectionError, TimeoutError) as e:
            logger.debug("cache_set_error", key=key, error=str(e))

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except (ConnectionError, TimeoutError) as e:
            logger.debug("cache_delete_error", key=key, error=str(e))

    def new_sub_cache(self) -> "RedisCacheProvider":
        return RedisCacheProvider(self._client, f"{self.namespace}:{uuid.uuid4().hex}")


_pool: Optional["redis.ConnectionPool"] = None
_pool_lock = threading.Lock()


def get_connection_pool(settings: Settings | None = None) -> "redis.ConnectionPool":
    """Process-wide Redis connection pool, created on first use."""
    global _pool
    with _pool_lock:
        if _pool is None:
            settings = settings or get_settings()
            _pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                socket_timeout=settings.redis_socket_timeout,
                socket_connect_timeout=settings.redis_socket_timeout,
                decode_responses=False,  # We handle encoding ourselves
            )
            logger.info("redis_pool_created", host=settings.redis_host, port=settings.redis_port)
        return _pool


def create_provider(settings: Settings | None = None) -> CacheProvider:
    """Build the top-level provider selected by settings.cache_backend."""
    settings = settings or get_settings()
    if settings.cache_backend == "redis":
        client = redis.Redis(connection_pool=get_connection_pool(settings))
        return RedisCacheProvider(client, settings.cache_key_prefix)
    return MemoryCacheProvider()


__all__ = [
    "CacheProvider",
    "MemoryCacheProvider",
    "RedisCacheProvider",
    "create_provider",
    "get_connection_pool",
]
