"""
Cache-backed API client.

Sits in front of a RemoteSource with one VersionedObjectCache per item
type, so that repeated lookups of current revisions and any lookup of a
past revision are served locally once fetched.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from geohistory.config import CacheConfig
from geohistory.data.api.base import APIClient, RemoteSource
from geohistory.data.cache.history import VersionedObjectCache
from geohistory.data.cache.manager import CacheRegistry
from geohistory.data.cache.storage import DurableBackend
from geohistory.data.items import GeographicalItem, Identifier, ItemType, Version
from geohistory.errors import APIError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CachedAPIClient(APIClient):
    """
    Fetch-through client backed by versioned object caches.

    Every exception from the remote source that is not already an APIError
    is wrapped in an UpstreamError. Nothing is retried here.
    """

    def __init__(
        self,
        remote: RemoteSource,
        config: Optional[CacheConfig] = None,
        backend: Optional[DurableBackend] = None,
        registry: Optional[CacheRegistry] = None,
        name_prefix: str = "",
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cached API client.

        Args:
            remote: Upstream API
            config: Cache configuration shared by the per-type caches
            backend: Durable tier shared by the per-type caches
            registry: Registry the caches join (process default if None)
            name_prefix: Prefix of the cache names, to keep several clients
                apart on one durable backend
            clock: Time source for memory and history ages
            wall_clock: Time source for durable write times
        """
        self.remote = remote
        self._caches: Dict[ItemType, VersionedObjectCache] = {
            kind: VersionedObjectCache(
                f"{name_prefix}{kind.value}",
                config=config,
                backend=backend,
                registry=registry,
                clock=clock,
                wall_clock=wall_clock,
            )
            for kind in ItemType
        }

    def cache_for(self, kind: ItemType) -> VersionedObjectCache:
        """Get the cache backing one item type."""
        return self._caches[kind]

    def fetch(
        self,
        kind: ItemType,
        item_id: Union[Identifier, int],
        as_of: Optional[datetime] = None,
    ) -> GeographicalItem:
        """Fetch the current revision, or the revision current at as_of."""
        item_id = Identifier.of(item_id)
        if as_of is not None:
            return self._fetch_as_of(kind, item_id, as_of)

        cache = self._caches[kind]
        item = cache.get(item_id)
        if item is not None:
            return item

        item = self._call(self.remote.fetch_current, kind, item_id)
        cache.cache_current(item)
        return item

    def fetch_version(
        self,
        kind: ItemType,
        item_id: Union[Identifier, int],
        version: Union[Version, int],
    ) -> GeographicalItem:
        """Fetch one specific revision."""
        item_id = Identifier.of(item_id)
        version = Version.of(version)
        cache = self._caches[kind]

        item = cache.get_version(item_id, version)
        if item is not None:
            return item

        item = self._call(self.remote.fetch_version, kind, item_id, version)
        cache.cache_version(item)
        return item

    def fetch_history(
        self,
        kind: ItemType,
        item_id: Union[Identifier, int],
    ) -> Dict[Version, GeographicalItem]:
        """
        Fetch every revision of an item.

        Returns:
            Revisions sorted by version

        Raises:
            NotFoundError: If the upstream history holds no versioned revision
        """
        item_id = Identifier.of(item_id)
        cache = self._caches[kind]

        history = cache.get_history(item_id)
        if history is not None:
            return history

        revisions = self._call(self.remote.fetch_history, kind, item_id)
        history = {
            Version.of(revision.version): revision
            for revision in revisions
            if revision.version is not None
        }
        if not history:
            raise NotFoundError(kind, item_id)

        cache.cache_history(history)
        logger.debug(f"Cached {len(history)} revisions of {kind.value} {item_id}")
        return dict(sorted(history.items(), key=lambda kv: kv[0]))

    def fetch_full(self, relation_id: Union[Identifier, int]) -> None:
        """Prefetch a relation's member tree into the caches."""
        relation_id = Identifier.of(relation_id)
        items = self._call(self.remote.fetch_full, relation_id)
        for item in items:
            self._caches[item.kind].cache_current(item)
        logger.debug(f"Prefetched {len(items)} items for relation {relation_id}")

    def clean_up(self) -> Dict[str, Dict[str, int]]:
        """Run the eviction sweeps of the three caches."""
        return {kind.value: cache.clean_up() for kind, cache in self._caches.items()}

    def _fetch_as_of(
        self,
        kind: ItemType,
        item_id: Identifier,
        as_of: datetime,
    ) -> GeographicalItem:
        """Pick the latest revision created at or before as_of."""
        history = self.fetch_history(kind, item_id)
        as_of = _as_utc(as_of)

        found = None
        for revision in history.values():
            if revision.timestamp is not None and _as_utc(revision.timestamp) <= as_of:
                found = revision
        if found is None:
            raise NotFoundError(kind, item_id, as_of=as_of)
        return found

    def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Call the remote source, wrapping non-API failures."""
        try:
            return func(*args)
        except APIError:
            raise
        except Exception as e:
            name = getattr(func, "__name__", "remote call")
            raise UpstreamError(f"Remote {name} failed", cause=e) from e
