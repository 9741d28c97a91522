"""
Cache key derivation.

A CacheKeyDescriptor describes one query's cacheable identity. The key is
built from the descriptor's fragments, each followed by SEPARATOR, in a
fixed order:

    type : search : preloads... : wheres... : order : limit : offset : group : extra...

Fields that are unset, empty or zero contribute nothing. Fragment order
within preloads/wheres/extra is kept as given, so the same fragments in a
different order produce a different key.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, get_origin

from querycache.models import Cacheable

SEPARATOR = ":"


def type_identity(type_: Any) -> str:
    """
    Stable name for a result type.

    Classes give "module.QualName", generic aliases such as list[Widget]
    their str(), anything else the name of its runtime type.
    """
    if get_origin(type_) is not None:
        return str(type_)
    if isinstance(type_, type):
        return f"{type_.__module__}.{type_.__qualname__}"
    return type_identity(type(type_))


@dataclass
class CacheKeyDescriptor:
    """
    Structured description of a cacheable query.

    Examples:
        CacheKeyDescriptor(search=Order(status="active"), extra=["Count"]).generate()
        -> "status=active:Count:"
    """

    bucket: str = ""
    type_: Any = None
    search: Optional[Cacheable] = None
    preloads: list[str] = field(default_factory=list)
    wheres: list[str] = field(default_factory=list)
    order: str = ""
    limit: int = 0
    offset: int = 0
    group: str = ""
    extra: list[str] = field(default_factory=list)

    def fragments(self) -> list[str]:
        """The contributing fragments, in key order."""
        parts: list[str] = []
        if self.type_ is not None:
            parts.append(type_identity(self.type_))
        if self.search is not None:
            parts.append(self.search.get_cache_key())
        parts.extend(self.preloads)
        parts.extend(self.wheres)
        if self.order:
            parts.append(self.order)
        if self.limit > 0:
            parts.append(str(self.limit))
        if self.offset > 0:
            parts.append(str(self.offset))
        if self.group:
            parts.append(self.group)
        parts.extend(self.extra)
        return parts

    def generate(self) -> str:
        """Build the key. Empty string means the query is not cacheable."""
        return "".join(part + SEPARATOR for part in self.fragments())

    def resolve_bucket(self) -> str:
        """Explicit bucket, else the search criteria's bucket, else ""."""
        if self.bucket:
            return self.bucket
        if self.search is not None:
            return self.search.get_cache_bucket()
        return ""

    def with_type(self, type_: Any) -> "CacheKeyDescriptor":
        """Copy of this descriptor with the type identity set."""
        return dataclasses.replace(self, type_=type_)


__all__ = ["SEPARATOR", "CacheKeyDescriptor", "type_identity"]
