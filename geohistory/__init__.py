"""
geohistory - caching and relation resolution for versioned geographic APIs.

Example usage:
    from geohistory import CachedAPIClient, RelationResolver, ItemType

    client = CachedAPIClient(remote=my_remote_source)
    resolver = RelationResolver(client)

    relation = client.fetch(ItemType.RELATION, 1234)
    segments = resolver.resolve_segments(relation)
"""

from geohistory.analysis import RelationResolver
from geohistory.config import CacheConfig, EvictionLimits, load_config
from geohistory.data.api import APIClient, CachedAPIClient, RemoteSource
from geohistory.data.cache import (
    CacheRegistry,
    EvictionScheduler,
    ItemCache,
    SQLiteBackend,
    VersionedObjectCache,
)
from geohistory.data.items import (
    Identifier,
    ItemType,
    Path,
    Point,
    Relation,
    RelationMember,
    Segment,
    Version,
)
from geohistory.errors import (
    APIError,
    BackendError,
    GeoHistoryError,
    NotFoundError,
    UpstreamError,
)

__version__ = "0.1.0"

__all__ = [
    "APIClient",
    "APIError",
    "BackendError",
    "CacheConfig",
    "CacheRegistry",
    "CachedAPIClient",
    "EvictionLimits",
    "EvictionScheduler",
    "GeoHistoryError",
    "Identifier",
    "ItemCache",
    "ItemType",
    "NotFoundError",
    "Path",
    "Point",
    "Relation",
    "RelationMember",
    "RelationResolver",
    "RemoteSource",
    "SQLiteBackend",
    "Segment",
    "UpstreamError",
    "Version",
    "VersionedObjectCache",
    "load_config",
]
