"""
Structured logging for querycache.

Every event is tagged with the component and version. Cache keys embed
search criteria and can grow long, so key fields are shortened before
rendering. The coordinator binds the bucket and key of the lookup in
progress with cache_scope(), which attributes provider errors logged
further down to the query that caused them.

Usage:
    from querycache.logging import cache_logger, cache_scope

    with cache_scope(bucket="orders", key="builtins.int:status=active,:Count:"):
        cache_logger.debug("cache_miss")
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from querycache import __version__

LOGGER_NAMESPACE = "querycache"
MAX_KEY_LENGTH = 120
KEY_FIELDS = ("key", "cache_key")


def _tag_component(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("component", LOGGER_NAMESPACE)
    event_dict.setdefault("version", __version__)
    return event_dict


def shorten_cache_keys(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Cut key fields longer than MAX_KEY_LENGTH, keeping the head and the length."""
    for field in KEY_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str) and len(value) > MAX_KEY_LENGTH:
            event_dict[field] = f"{value[:MAX_KEY_LENGTH]}...({len(value)} chars)"
    return event_dict


def get_processors(json: Optional[bool] = None) -> list[Processor]:
    """
    Processor chain for querycache loggers.

    Args:
        json: Render JSON lines instead of console output. Defaults to
            settings.log_json.
    """
    if json is None:
        from querycache.config import get_settings

        json = get_settings().log_json

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _tag_component,
        shorten_cache_keys,
    ]
    if json:
        return processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return processors + [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


@lru_cache(maxsize=1)
def configure_logging(level: str = "INFO") -> None:
    """Route querycache loggers to stderr at level. Later calls are no-ops."""
    root = logging.getLogger(LOGGER_NAMESPACE)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    structlog.configure(
        processors=get_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger under the querycache namespace, configuring logging on first use."""
    if not structlog.is_configured():
        from querycache.config import get_settings

        configure_logging(get_settings().log_level)
    if not name.startswith(LOGGER_NAMESPACE):
        name = f"{LOGGER_NAMESPACE}.{name}"
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def cache_scope(bucket: str, key: str) -> Iterator[None]:
    """Bind cache_bucket and cache_key to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(cache_bucket=bucket, cache_key=key):
        yield


class _LazyLogger:
    """Resolves its logger on first attribute access, not at import."""

    def __init__(self, name: str):
        self._name = name
        self._logger: structlog.stdlib.BoundLogger | None = None

    def __getattr__(self, name: str):
        if self._logger is None:
            self._logger = get_logger(self._name)
        return getattr(self._logger, name)


db_logger = _LazyLogger("database")
cache_logger = _LazyLogger("cache")


__all__ = [
    "cache_logger",
    "cache_scope",
    "configure_logging",
    "db_logger",
    "get_logger",
    "shorten_cache_keys",
]
