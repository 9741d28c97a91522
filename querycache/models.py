"""
Cacheable model support.

Models used as search criteria or saved through QueryCache.save_flush expose
a cache key fragment and a cache bucket.

Usage:
    class Order(CacheableMixin, Base):
        __tablename__ = "orders"
        ...

    criteria = Order(status="active")
    criteria.get_cache_key()     # "status=active"
    criteria.get_cache_bucket()  # "orders"
"""

from typing import Any, Protocol, runtime_checkable

from sqlalchemy import inspect


@runtime_checkable
class Cacheable(Protocol):
    """Anything usable as search criteria for a cached query."""

    def get_cache_key(self) -> str: ...

    def get_cache_bucket(self) -> str: ...


class CacheableMixin:
    """
    Mixin for mapped models. Set (non-None) column attributes are the
    filter values; the table name is the bucket unless __cache_bucket__
    overrides it.
    """

    __cache_bucket__: str | None = None

    def cache_filters(self) -> dict[str, Any]:
        """Column values that are set, in column declaration order."""
        filters = {}
        for attr in inspect(type(self)).column_attrs:
            value = getattr(self, attr.key, None)
            if value is not None:
                filters[attr.key] = value
        return filters

    def get_cache_key(self) -> str:
        return ",".join(f"{name}={value}" for name, value in self.cache_filters().items())

    def get_cache_bucket(self) -> str:
        return self.__cache_bucket__ or getattr(self, "__tablename__", "")


__all__ = ["Cacheable", "CacheableMixin"]
