"""Exceptions raised by the query cache and its backing store."""


class QueryCacheError(Exception):
    """Base class for querycache errors."""


class InvalidArgumentError(QueryCacheError):
    """The output slot is not writable, or the descriptor yields no key."""


class InternalCacheError(QueryCacheError):
    """A value found under a cache key is not a cached entry."""


class RecordNotFoundError(QueryCacheError):
    """A first/last lookup matched no rows."""


class ConfigurationError(QueryCacheError):
    """Required settings are missing."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


__all__ = [
    "QueryCacheError",
    "InvalidArgumentError",
    "InternalCacheError",
    "RecordNotFoundError",
    "ConfigurationError",
]
