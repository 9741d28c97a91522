"""
Values held by cache providers, and the output slot callers read into.

A provider slot holds one of:
- CachedEntry: a query result and the time it was captured
- SubCache: a bucket's own provider
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

if TYPE_CHECKING:
    from querycache.cache.providers import CacheProvider

T = TypeVar("T")

NANOSECONDS = 1_000_000_000


@dataclass(frozen=True)
class CachedEntry:
    """A captured result and its capture time in nanoseconds since the epoch."""

    value: Any
    query_time: int

    def is_fresh(self, now: int, ttl_seconds: float) -> bool:
        """True while the entry is younger than ttl_seconds at time now."""
        return self.query_time > now - int(ttl_seconds * NANOSECONDS)


@dataclass(frozen=True)
class SubCache:
    """Handle to a bucket's sub-cache, stored in the top-level provider."""

    provider: "CacheProvider"


class ResultSlot(Generic[T]):
    """
    Writable output location for a cached query.

    Usage:
        out: ResultSlot[list[Order]] = ResultSlot(list[Order])
        query_cache.find_many(out, Order(status="active"), ttl=60)
        orders = out.value
    """

    def __init__(self, result_type: Any = None, value: Optional[T] = None):
        self.result_type = result_type
        self.value = value

    def assign(self, value: T) -> None:
        self.value = value

    @property
    def type_identity(self) -> Any:
        """Declared result type; None for an untyped slot, whatever it holds."""
        return self.result_type

    def __repr__(self) -> str:
        return f"ResultSlot(result_type={self.result_type!r}, value={self.value!r})"


def snapshot(value: Any) -> Any:
    """Shallow copy of collections so cached results are not shared mutably."""
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, set):
        return set(value)
    return value


__all__ = ["CachedEntry", "SubCache", "ResultSlot", "snapshot", "NANOSECONDS"]
