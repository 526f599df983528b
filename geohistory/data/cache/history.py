"""
Versioned Object Cache.

Extends the item cache with per-identifier revision histories. Past
revisions of an item never change, so once all of them have been fetched
the history can be served without asking the remote API again.

A history is only handed out when it is complete: the current version N of
the identifier is known and every version 1..N is cached. Histories grow
incrementally and out of order, so completeness is re-derived on each call
instead of being tracked as a flag.
"""

import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Union

from geohistory.config import CacheConfig
from geohistory.data.cache.manager import ItemCache, T
from geohistory.data.items import Identifier, Version

logger = logging.getLogger(__name__)


class _History:
    """Revisions of one identifier, guarded by their own lock."""

    __slots__ = ("lock", "versions")

    def __init__(self, versions: Optional[Dict[Version, object]] = None):
        self.lock = threading.Lock()
        self.versions: Dict[Version, object] = versions if versions is not None else {}


class VersionedObjectCache(ItemCache[T]):
    """
    Item cache that additionally keeps revision histories.

    Lock order: the instance lock (which guards the history map and the
    history touch index) is always taken before a per-identifier history
    lock, never the other way round.
    """

    def __init__(self, name: str, config: Optional[CacheConfig] = None, **kwargs):
        """
        Initialize versioned object cache.

        Args:
            name: Cache name, see ItemCache
            config: Eviction limits (defaults to CacheConfig.for_versioned())
            **kwargs: Passed on to ItemCache
        """
        # Set up before registration so a concurrent sweep sees a usable cache
        self._histories: Dict[Identifier, _History] = {}
        self._history_touched: "OrderedDict[Identifier, float]" = OrderedDict()
        super().__init__(name, config or CacheConfig.for_versioned(), **kwargs)

    def get_current(self, item_id: Union[Identifier, int]) -> Optional[T]:
        """Get the revision known to be current."""
        return self.get(item_id)

    def get_version(
        self,
        item_id: Union[Identifier, int],
        version: Union[Version, int],
    ) -> Optional[T]:
        """
        Get one specific revision.

        Args:
            item_id: Identifier of the item
            version: Requested revision

        Returns:
            The cached revision or None
        """
        item_id = Identifier.of(item_id)
        with self._lock:
            history = self._histories.get(item_id)
        if history is None:
            return None
        with history.lock:
            return history.versions.get(Version.of(version))

    def get_history(self, item_id: Union[Identifier, int]) -> Optional[Dict[Version, T]]:
        """
        Get the whole history of an item.

        Args:
            item_id: Identifier of the item

        Returns:
            Snapshot of all revisions sorted by version, or None unless the
            current version is known and every version from 1 to it is cached
        """
        item_id = Identifier.of(item_id)
        current, _ = self._lookup(item_id)
        if current is None or getattr(current, "version", None) is None:
            return None

        with self._lock:
            history = self._histories.get(item_id)
            if history is None:
                return None
            with history.lock:
                for number in range(1, int(current.version) + 1):
                    if Version(number) not in history.versions:
                        return None
                return dict(sorted(history.versions.items()))

    def history_ids(self) -> List[Identifier]:
        """Snapshot of identifiers with a (possibly incomplete) history."""
        with self._lock:
            return list(self._history_touched)

    def cache_current(self, obj: T) -> None:
        """
        Cache the current revision of an item.

        The revision also becomes part of the item's history.
        """
        self.put(obj)
        self.cache_version(obj)

    def cache_version(self, obj: T) -> None:
        """
        Cache a revision that is not, or not for sure, the current one.

        Objects without a version are ignored.
        """
        version = getattr(obj, "version", None)
        if version is None:
            return

        item_id = Identifier.of(obj.id)
        now = self._clock()
        with self._lock:
            history = self._histories.get(item_id)
            if history is None:
                history = _History()
                self._histories[item_id] = history
            self._history_touched[item_id] = now
            self._history_touched.move_to_end(item_id)
            # Insert under both locks so a concurrent replace or evict cannot orphan it
            with history.lock:
                history.versions[Version.of(version)] = obj

    def cache_history(self, history: Mapping[Union[Version, int], T]) -> None:
        """
        Cache the whole history of an item in one step.

        The highest revision is cached as the current one, and the stored
        history of the identifier is replaced by a copy of the given one.

        Args:
            history: Revisions keyed by version
        """
        if not history:
            return

        versions = dict(
            sorted(((Version.of(v), obj) for v, obj in history.items()), key=lambda kv: kv[0])
        )
        current = versions[max(versions)]
        self.cache_current(current)

        item_id = Identifier.of(current.id)
        now = self._clock()
        with self._lock:
            self._histories[item_id] = _History(versions)
            self._history_touched[item_id] = now
            self._history_touched.move_to_end(item_id)

    def evict_histories(self) -> int:
        """
        Evict whole histories exceeding the history limits.

        Returns:
            Number of histories removed
        """
        limits = self.config.history
        evicted = 0
        while True:
            with self._lock:
                if not self._history_touched:
                    break
                oldest_id, touched_at = next(iter(self._history_touched.items()))
                age = self._clock() - touched_at
                if (
                    age <= limits.max_age_seconds
                    and len(self._history_touched) <= limits.max_count
                ):
                    break
                self._history_touched.popitem(last=False)
                self._histories.pop(oldest_id, None)
            evicted += 1

        if evicted:
            logger.info(f"Removed {evicted} histories from {self.name}")
        return evicted

    def clean_up(self) -> Dict[str, int]:
        """Run the item cache sweeps, then the history sweep."""
        result = super().clean_up()
        result["histories"] = self.evict_histories()
        return result
