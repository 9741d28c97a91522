"""
Read-through query cache.

QueryCache sits in front of a ReadWriteDatabase. Reads check the cache
first and only reach the database on a miss or once the cached entry is
older than the requested TTL. Entries are grouped into buckets (one per
table by default) so a write can invalidate everything cached for it.

Usage:
    query_cache = QueryCache(database)

    out = ResultSlot(list[Order])
    orders = query_cache.find_many(out, Order(status="active"), ttl=60)
    active = query_cache.count(Order(status="active"), ttl=60)

    query_cache.save_flush(order)  # persists and drops the "orders" bucket
"""

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Optional, Union

from sqlalchemy import inspect

from querycache.cache.entries import CachedEntry, ResultSlot, SubCache, snapshot
from querycache.cache.keys import CacheKeyDescriptor
from querycache.cache.providers import CacheProvider, create_provider
from querycache.config import get_settings
from querycache.db import ReadWriteDatabase
from querycache.exceptions import InternalCacheError, InvalidArgumentError, RecordNotFoundError
from querycache.logging import cache_logger as logger, cache_scope
from querycache.models import CacheableMixin

MissHandler = Callable[[Any, ResultSlot], None]
TTL = Union[int, float, timedelta]


def _seconds(ttl: TTL) -> float:
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


class QueryCache:
    """
    Cache coordinator over a backing store.

    Args:
        store: Backing store handed to miss handlers (ReadWriteDatabase
            for the built-in find operations).
        provider: Top-level cache provider. Defaults to the one selected
            by settings.
        clock: Nanosecond wall clock used to stamp and check entries.
        bucket_ttl: Retention for bucket sub-caches in seconds. Defaults
            to settings.cache_bucket_ttl_seconds (24 hours).
    """

    def __init__(
        self,
        store: Any,
        provider: Optional[CacheProvider] = None,
        clock: Callable[[], int] = time.time_ns,
        bucket_ttl: Optional[TTL] = None,
    ):
        settings = get_settings()
        self.store = store
        self.provider = provider if provider is not None else create_provider(settings)
        self._clock = clock
        self.bucket_ttl = _seconds(
            bucket_ttl if bucket_ttl is not None else settings.cache_bucket_ttl_seconds
        )

    # =========================================================================
    # Read path
    # =========================================================================

    def execute(
        self,
        miss: MissHandler,
        out: ResultSlot,
        ttl: TTL,
        descriptor: CacheKeyDescriptor,
    ) -> None:
        """
        Fill out from the cache, or from miss(store, out) and cache the result.

        Raises:
            InvalidArgumentError: out is not a ResultSlot, or the descriptor
                yields an empty key.
            InternalCacheError: the value under the key is not a CachedEntry.
            Anything raised by miss, unchanged. Nothing is cached then.
        """
        if not isinstance(out, ResultSlot):
            raise InvalidArgumentError(f"out must be a ResultSlot, got {type(out).__name__}")

        if descriptor.type_ is None:
            descriptor = descriptor.with_type(out.type_identity)

        key = descriptor.generate()
        if not key:
            raise InvalidArgumentError(
                "cannot cache with an empty key, add some information to the descriptor"
            )

        bucket = descriptor.resolve_bucket()
        with cache_scope(bucket, key):
            self._read_through(miss, out, _seconds(ttl), key, bucket)

    def _read_through(
        self, miss: MissHandler, out: ResultSlot, ttl_seconds: float, key: str, bucket: str
    ) -> None:
        cache = self._resolve_provider(bucket, create=True)
        now = self._clock()

        value, found = cache.get(key)
        if found:
            if not isinstance(value, CachedEntry):
                raise InternalCacheError(
                    f"value under key {key!r} is {type(value).__name__}, not a cached entry"
                )
            if value.is_fresh(now, ttl_seconds):
                logger.debug("cache_hit")
                out.assign(snapshot(value.value))
                return
            logger.debug("cache_stale")
        else:
            logger.debug("cache_miss")

        # out only changes once the miss handler has succeeded
        scratch = ResultSlot(out.result_type, out.value)
        miss(self.store, scratch)
        out.assign(scratch.value)

        cache.set(key, CachedEntry(value=snapshot(out.value), query_time=now), ttl_seconds)

    def find_many(self, out: ResultSlot, criteria: CacheableMixin, ttl: TTL) -> Any:
        """All rows matching criteria."""
        model = type(criteria)

        def miss(store: ReadWriteDatabase, slot: ResultSlot) -> None:
            with store.read() as session:
                slot.assign(session.query(model).filter_by(**criteria.cache_filters()).all())

        self.execute(miss, out, ttl, CacheKeyDescriptor(search=criteria, extra=["FindMany"]))
        return out.value

    def find_first(self, out: ResultSlot, criteria: CacheableMixin, ttl: TTL) -> Any:
        """
        First row matching criteria by primary key.

        Raises:
            RecordNotFoundError: no row matches (nothing is cached).
        """
        self.execute(
            _first_or_last(criteria, descending=False),
            out,
            ttl,
            CacheKeyDescriptor(search=criteria, extra=["FindFirst"]),
        )
        return out.value

    def find_last(self, out: ResultSlot, criteria: CacheableMixin, ttl: TTL) -> Any:
        """
        Last row matching criteria by primary key.

        Raises:
            RecordNotFoundError: no row matches (nothing is cached).
        """
        self.execute(
            _first_or_last(criteria, descending=True),
            out,
            ttl,
            CacheKeyDescriptor(search=criteria, extra=["FindLast"]),
        )
        return out.value

    def count(self, criteria: CacheableMixin, ttl: TTL) -> int:
        """Number of rows matching criteria."""
        model = type(criteria)

        def miss(store: ReadWriteDatabase, slot: ResultSlot) -> None:
            with store.read() as session:
                slot.assign(session.query(model).filter_by(**criteria.cache_filters()).count())

        out: ResultSlot[int] = ResultSlot(int, 0)
        self.execute(miss, out, ttl, CacheKeyDescriptor(search=criteria, extra=["Count"]))
        return out.value

    # =========================================================================
    # Write path
    # =========================================================================

    def save_flush(self, record: CacheableMixin) -> Any:
        """
        Persist record, then drop every cached entry in its bucket.

        A failed save raises unchanged and invalidates nothing.
        """
        saved = self.store.save(record)
        self.flush(CacheKeyDescriptor(bucket=record.get_cache_bucket()))
        return saved

    def flush(self, descriptor: CacheKeyDescriptor) -> None:
        """
        Invalidate cached entries.

        A descriptor that yields a key deletes that key from its bucket (or
        from the top-level provider when there is no bucket). A descriptor
        with only a bucket deletes the whole bucket.
        """
        bucket = descriptor.resolve_bucket()
        key = descriptor.generate()

        with cache_scope(bucket, key):
            if key:
                self._resolve_provider(bucket, create=False).delete(key)
                logger.debug("cache_flush")
            elif bucket:
                self.provider.delete(bucket)
                logger.debug("cache_flush")

    # =========================================================================
    # Bucket routing
    # =========================================================================

    def _resolve_provider(self, bucket: str, create: bool) -> CacheProvider:
        """
        Provider for a bucket: its sub-cache, created on demand when create
        is set. Falls back to the top-level provider when there is no bucket,
        or when the bucket name holds something other than a sub-cache.
        """
        if not bucket:
            return self.provider

        value, found = self.provider.get(bucket)
        if found:
            if isinstance(value, SubCache):
                return value.provider
            return self.provider

        if not create:
            return self.provider

        sub_cache = self.provider.new_sub_cache()
        self.provider.set(bucket, SubCache(sub_cache), self.bucket_ttl)
        logger.debug("bucket_created")
        return sub_cache


def _first_or_last(criteria: CacheableMixin, descending: bool) -> MissHandler:
    model = type(criteria)
    primary_key = inspect(model).primary_key
    ordering = [column.desc() for column in primary_key] if descending else list(primary_key)

    def miss(store: ReadWriteDatabase, slot: ResultSlot) -> None:
        with store.read() as session:
            record = (
                session.query(model)
                .filter_by(**criteria.cache_filters())
                .order_by(*ordering)
                .first()
            )
        if record is None:
            raise RecordNotFoundError(f"no {model.__name__} matches {criteria.get_cache_key()!r}")
        slot.assign(record)

    return miss


__all__ = ["QueryCache", "MissHandler"]
