"""
Item Cache Manager.

Provides the single-current-version cache used in front of the remote API:
- Memory tier holding the most recently seen instance of each identifier
- Optional durable overflow tier that receives evicted entries
- Bounded-size/bounded-age eviction of both tiers
- A registry of live caches, held weakly, for batch eviction sweeps
- Thread-safe operations

Eviction is never self-scheduled. Some external scheduler calls
CacheRegistry.evict_all() (or clean_up() on one cache) periodically.
"""

import logging
import threading
import time
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Set, Tuple, TypeVar, Union

from geohistory.config import CacheConfig
from geohistory.data.cache.storage import DurableBackend, ItemSerializer, PickleSerializer
from geohistory.data.items import Identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheStatistics:
    """Statistics about cache usage."""

    memory_entries: int = 0
    persisted_ids: int = 0
    hits: int = 0
    durable_hits: int = 0
    misses: int = 0
    evictions: int = 0
    persisted: int = 0
    backend_failures: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate over both tiers."""
        total = self.hits + self.durable_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.durable_hits) / total

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "memory_entries": self.memory_entries,
            "persisted_ids": self.persisted_ids,
            "hits": self.hits,
            "durable_hits": self.durable_hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "persisted": self.persisted,
            "backend_failures": self.backend_failures,
            "hit_rate": self.hit_rate,
        }


class ItemCache(Generic[T]):
    """
    Cache of the current instance of items, looked up by identifier.

    One instance covers one identifier namespace, so separate caches are
    needed per item type. The value map and the touch index are only ever
    changed together under the instance lock, so an identifier is never
    present in one without the other.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CacheConfig] = None,
        backend: Optional[DurableBackend] = None,
        serializer: Optional[ItemSerializer] = None,
        registry: Optional["CacheRegistry"] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        """
        Initialize item cache.

        Args:
            name: Name identifying this cache in the durable backend. No two
                live caches sharing a backend may use the same name.
            config: Eviction limits (defaults to CacheConfig())
            backend: Durable overflow tier (memory only if None)
            serializer: Serializer for durable rows (pickle if None)
            registry: Registry for batch eviction (process default if None)
            clock: Time source for memory and history ages, in seconds
            wall_clock: Time source for durable write times, in Unix seconds
        """
        self.name = name
        self.config = config or CacheConfig()
        self.backend = backend
        self.serializer = serializer or PickleSerializer()
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.RLock()
        self._items: Dict[Identifier, T] = {}
        # Oldest touch first; put() moves an identifier to the end
        self._touched: "OrderedDict[Identifier, float]" = OrderedDict()
        self._persisted_lock = threading.Lock()
        self._persisted: Set[Identifier] = set()
        self._statistics = CacheStatistics()

        if self.backend is not None:
            self._refresh_persisted_ids()

        self.registry = registry if registry is not None else default_registry()
        self.registry.register(self)

        logger.debug(
            f"ItemCache {name} initialized (durable={backend is not None}, "
            f"max_count={self.config.memory.max_count}, "
            f"max_age={self.config.memory.max_age_seconds}s)"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: Union[Identifier, int]) -> bool:
        with self._lock:
            return Identifier.of(item_id) in self._items

    def memory_ids(self) -> List[Identifier]:
        """Snapshot of memory-resident identifiers, oldest touch first."""
        with self._lock:
            return list(self._touched)

    def get(self, item_id: Union[Identifier, int]) -> Optional[T]:
        """
        Get the current instance of an item.

        Args:
            item_id: Identifier to look up

        Returns:
            The memory entry, else the durable entry if the identifier is
            known to be persisted, else None
        """
        item_id = Identifier.of(item_id)
        item, tier = self._lookup(item_id)
        with self._lock:
            if tier == "memory":
                self._statistics.hits += 1
            elif tier == "durable":
                self._statistics.durable_hits += 1
            else:
                self._statistics.misses += 1
        return item

    def put(self, item: T) -> None:
        """
        Cache an item as the current instance for its identifier.

        Args:
            item: Item to cache (anything with an ``id`` attribute)
        """
        item_id = Identifier.of(item.id)
        now = self._clock()
        with self._lock:
            self._items[item_id] = item
            self._touched[item_id] = now
            self._touched.move_to_end(item_id)

    def evict_memory(self) -> int:
        """
        Evict entries exceeding the memory limits.

        Removes the oldest entry while it is older than the maximum age or
        the cache holds more than the maximum count. With a durable backend
        configured, evicted entries are moved there.

        Returns:
            Number of entries evicted from memory
        """
        limits = self.config.memory
        logger.info(f"Cache {self.name} contains {len(self)} entries")

        evicted = 0
        moved = 0
        while True:
            with self._lock:
                if not self._touched:
                    break
                oldest_id, touched_at = next(iter(self._touched.items()))
                age = self._clock() - touched_at
                if age <= limits.max_age_seconds and len(self._items) <= limits.max_count:
                    break
                self._touched.popitem(last=False)
                item = self._items.pop(oldest_id)
                self._statistics.evictions += 1

            evicted += 1
            if self.backend is not None and self._persist(oldest_id, item):
                moved += 1

        if self.backend is not None:
            logger.info(f"Moved {moved} of {evicted} entries of {self.name} to the durable cache")
        else:
            logger.info(f"Removed {evicted} entries of {self.name} from memory")
        return evicted

    def evict_durable(self) -> int:
        """
        Remove durable entries exceeding the durable limits.

        Deletes rows older than the durable maximum age, then all but the
        most recent rows up to the durable maximum count. If anything was
        deleted, the set of persisted identifiers is reloaded from the
        backend.

        Returns:
            Number of durable rows deleted
        """
        if self.backend is None:
            return 0

        limits = self.config.durable
        affected = 0

        result = self.backend.delete_older_than(
            self.name, self._wall_clock() - limits.max_age_seconds
        )
        if result.ok:
            affected += result.value or 0
        else:
            self._backend_failed(f"Could not expire durable entries of {self.name}", result.error)

        result = self.backend.delete_beyond_newest(self.name, limits.max_count)
        if result.ok:
            affected += result.value or 0
        else:
            self._backend_failed(f"Could not trim durable entries of {self.name}", result.error)

        if affected > 0:
            logger.info(f"Removed {affected} old entries of {self.name} from the durable cache")
            self._refresh_persisted_ids()

        return affected

    def clean_up(self) -> Dict[str, int]:
        """
        Run the memory sweep, then the durable sweep.

        Returns:
            Counts of removed entries per tier
        """
        return {
            "memory": self.evict_memory(),
            "durable": self.evict_durable(),
        }

    def get_statistics(self) -> CacheStatistics:
        """
        Get current cache statistics.

        Returns:
            Snapshot of the statistics
        """
        with self._persisted_lock:
            persisted_ids = len(self._persisted)
        with self._lock:
            stats = CacheStatistics(**vars(self._statistics))
            stats.memory_entries = len(self._items)
        stats.persisted_ids = persisted_ids
        return stats

    def _lookup(self, item_id: Identifier) -> Tuple[Optional[T], Optional[str]]:
        """Find an entry without counting the lookup. Returns (item, tier)."""
        with self._lock:
            item = self._items.get(item_id)
        if item is not None:
            return item, "memory"

        if self.backend is not None and self._is_persisted(item_id):
            item = self._load_durable(item_id)
            if item is not None:
                return item, "durable"

        return None, None

    def _is_persisted(self, item_id: Identifier) -> bool:
        with self._persisted_lock:
            return item_id in self._persisted

    def _load_durable(self, item_id: Identifier) -> Optional[T]:
        """Read one entry from the durable tier, None on miss or failure."""
        result = self.backend.lookup(self.name, item_id)
        if not result.ok:
            self._backend_failed(f"Could not get {item_id} from the durable cache", result.error)
            return None
        if result.value is None:
            return None
        try:
            return self.serializer.loads(result.value)
        except Exception as e:
            self._backend_failed(f"Could not deserialize {item_id} from the durable cache", e)
            return None

    def _persist(self, item_id: Identifier, item: T) -> bool:
        """Upsert one evicted entry into the durable tier."""
        try:
            data = self.serializer.dumps(item)
        except Exception as e:
            self._backend_failed(f"Could not serialize {item_id} for the durable cache", e)
            return False

        result = self.backend.upsert(self.name, item_id, data, self._wall_clock())
        if not result.ok:
            self._backend_failed(f"Could not cache {item_id} in the durable cache", result.error)
            return False

        with self._persisted_lock:
            self._persisted.add(item_id)
        with self._lock:
            self._statistics.persisted += 1
        return True

    def _refresh_persisted_ids(self) -> None:
        """Replace the known-persisted identifiers with the backend's list."""
        result = self.backend.list_ids(self.name)
        if not result.ok:
            self._backend_failed(f"Could not list durable entries of {self.name}", result.error)
            return
        with self._persisted_lock:
            self._persisted = set(result.value or ())

    def _backend_failed(self, message: str, error: Optional[BaseException]) -> None:
        logger.warning(f"{message}: {error}")
        with self._lock:
            self._statistics.backend_failures += 1


class CacheRegistry:
    """
    Registry of live item caches for batch eviction.

    Caches are held through weak references, so registering a cache does
    not keep it alive. Sweeps iterate over a snapshot, which lets new caches
    register while a sweep is running.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._caches: "weakref.WeakSet[ItemCache]" = weakref.WeakSet()

    def __len__(self) -> int:
        with self._lock:
            return len(self._caches)

    def register(self, cache: ItemCache) -> None:
        """
        Register a cache.

        Raises:
            ValueError: If a live cache with the same name already uses the
                same durable backend
        """
        with self._lock:
            if cache.backend is not None:
                for other in self._caches:
                    if (
                        other is not cache
                        and other.name == cache.name
                        and other.backend is cache.backend
                    ):
                        raise ValueError(
                            f"A cache named {cache.name!r} already uses this durable backend"
                        )
            self._caches.add(cache)

    def unregister(self, cache: ItemCache) -> None:
        with self._lock:
            self._caches.discard(cache)

    def caches(self) -> List[ItemCache]:
        """Point-in-time snapshot of the registered caches."""
        with self._lock:
            return list(self._caches)

    def evict_all(self) -> Dict[str, Dict[str, int]]:
        """
        Run clean_up() on every registered cache.

        A failure in one cache is logged and does not stop the sweep.

        Returns:
            Removed-entry counts keyed by cache name
        """
        results: Dict[str, Dict[str, int]] = {}
        for cache in self.caches():
            try:
                results[cache.name] = cache.clean_up()
            except Exception as e:
                logger.error(f"Error cleaning up cache {cache.name}: {e}")
        return results


_DEFAULT_REGISTRY = CacheRegistry()


def default_registry() -> CacheRegistry:
    """Registry used by caches created without an explicit one."""
    return _DEFAULT_REGISTRY
