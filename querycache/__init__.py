"""
querycache: a read-through cache in front of a relational database.

Usage:
    # Backing store
    from querycache.db import Base, ReadWriteDatabase
    from querycache.models import CacheableMixin

    # Cache
    from querycache.cache import QueryCache, ResultSlot, CacheKeyDescriptor

    # Config / logging
    from querycache.config import get_settings
    from querycache.logging import get_logger, configure_logging
"""

__version__ = "1.0.0"

# Lazy imports to avoid circular dependencies
# Users should import directly from submodules:
#   from querycache.cache import QueryCache
#   from querycache.db import ReadWriteDatabase
