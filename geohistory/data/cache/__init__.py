"""
Cache System for Versioned Geographic Items.

Avoids redundant remote fetches of immutable past revisions and of
frequently reused current revisions.

Components:
- Durable overflow storage (SQLite) for entries evicted from memory
- Item caches holding the current revision per identifier
- Versioned object caches adding complete revision histories
- A weak registry and an optional scheduler for eviction sweeps

Example usage:
    from geohistory.data.cache import (
        CacheRegistry,
        SQLiteBackend,
        VersionedObjectCache,
    )

    registry = CacheRegistry()
    backend = SQLiteBackend("~/.geohistory/durable.db")

    paths = VersionedObjectCache("path", backend=backend, registry=registry)
    paths.cache_current(path)

    current = paths.get(path.id)
    history = paths.get_history(path.id)  # None until complete

    # Called periodically by the application
    registry.evict_all()
"""

from geohistory.data.cache.storage import (
    BackendResult,
    DurableBackend,
    ItemSerializer,
    PickleSerializer,
    SQLiteBackend,
)

from geohistory.data.cache.manager import (
    CacheRegistry,
    CacheStatistics,
    ItemCache,
    default_registry,
)

from geohistory.data.cache.history import VersionedObjectCache

from geohistory.data.cache.scheduler import EvictionScheduler

__all__ = [
    # Storage
    "BackendResult",
    "DurableBackend",
    "ItemSerializer",
    "PickleSerializer",
    "SQLiteBackend",
    # Manager
    "CacheRegistry",
    "CacheStatistics",
    "ItemCache",
    "default_registry",
    # History
    "VersionedObjectCache",
    # Scheduling
    "EvictionScheduler",
]
