"""
API client interfaces.

RemoteSource is the raw upstream API (transport, authentication and
document parsing live in its implementations). APIClient is what the
relation resolver fetches through; CachedAPIClient implements it on top of
a RemoteSource and the caches.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from geohistory.data.items import GeographicalItem, Identifier, ItemType, Version


class RemoteSource(ABC):
    """
    Raw access to the versioned remote API.

    Implementations raise NotFoundError for missing items or revisions and
    UpstreamError for network or protocol failures.
    """

    @abstractmethod
    def fetch_current(self, kind: ItemType, item_id: Identifier) -> GeographicalItem:
        """Fetch the current revision of an item."""
        pass

    @abstractmethod
    def fetch_version(
        self,
        kind: ItemType,
        item_id: Identifier,
        version: Version,
    ) -> GeographicalItem:
        """Fetch one specific revision of an item."""
        pass

    @abstractmethod
    def fetch_history(self, kind: ItemType, item_id: Identifier) -> List[GeographicalItem]:
        """Fetch every revision of an item."""
        pass

    @abstractmethod
    def fetch_full(self, relation_id: Identifier) -> List[GeographicalItem]:
        """
        Fetch a relation together with its whole member tree.

        Returns:
            Current revisions of the relation and of every point, path and
            relation transitively referenced by it
        """
        pass


class APIClient(ABC):
    """Fetch-through access used by the relation resolver."""

    @abstractmethod
    def fetch(
        self,
        kind: ItemType,
        item_id: Identifier,
        as_of: Optional[datetime] = None,
    ) -> GeographicalItem:
        """
        Fetch an item.

        Args:
            kind: Item type
            item_id: Item identifier
            as_of: Point in time (current revision if None)

        Returns:
            The current revision, or the revision that was current at as_of

        Raises:
            APIError: If the item could not be fetched
        """
        pass

    @abstractmethod
    def fetch_full(self, relation_id: Identifier) -> None:
        """
        Prefetch a relation's whole member tree into the backing caches.

        Raises:
            APIError: If the tree could not be fetched
        """
        pass
