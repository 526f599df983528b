"""
Relation Resolution.

Expands a relation into the complete set of points, paths and relations it
references directly or through sub-relations, and derives the line segments
that this set describes.

Members are fetched one after the other through an APIClient, which is
expected to be cache-backed. Relations already being expanded are skipped,
so cyclic membership graphs terminate. Any fetch failure aborts the whole
resolution.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from geohistory.data.api.base import APIClient
from geohistory.data.items import (
    GeographicalItem,
    Identifier,
    ItemType,
    Path,
    Point,
    Relation,
    Segment,
)

logger = logging.getLogger(__name__)


class RelationResolver:
    """Resolves relations into their transitive members and segments."""

    def __init__(self, client: APIClient):
        """
        Initialize resolver.

        Args:
            client: Fetch-through client used for every member lookup
        """
        self.client = client

    def resolve_members(
        self,
        relation: Relation,
        as_of: Optional[datetime] = None,
        visited: Optional[Set[Identifier]] = None,
    ) -> Set[GeographicalItem]:
        """
        Get all points, paths and relations contained in a relation and its
        sub-relations.

        Without as_of, each expanded relation's member tree is prefetched
        first so that the member lookups below are served from the cache.
        Point-in-time lookups cannot be batched and are fetched one by one.

        Args:
            relation: Relation to resolve
            as_of: Resolve the revisions current at this time (current if None)
            visited: Identifiers of relations that must not be expanded
                again. Shared across the recursion; the relation itself is
                added before its members are processed.

        Returns:
            Set of reachable items (the relation itself is not included
            unless it is reachable through another relation)

        Raises:
            APIError: If any member could not be fetched
        """
        members: Set[GeographicalItem] = set()
        self._expand(relation, as_of, members, visited if visited is not None else set())
        return members

    def _expand(
        self,
        relation: Relation,
        as_of: Optional[datetime],
        members: Set[GeographicalItem],
        visited: Set[Identifier],
    ) -> None:
        visited.add(relation.id)

        if as_of is None:
            self.client.fetch_full(relation.id)

        for member in relation.members:
            if member.type in (ItemType.PATH, ItemType.POINT):
                members.add(self.client.fetch(member.type, member.ref, as_of))
            elif member.type == ItemType.RELATION:
                if member.ref in visited:
                    logger.debug(
                        f"Skipping relation {member.ref} in {relation.id}, already expanded"
                    )
                    continue
                sub_relation = self.client.fetch(ItemType.RELATION, member.ref, as_of)
                members.add(sub_relation)
                self._expand(sub_relation, as_of, members, visited)
            else:
                raise ValueError(f"Unknown member type {member.type!r}")

    def resolve_paths(self, relation: Relation, as_of: Optional[datetime] = None) -> List[Path]:
        """Get all paths contained in a relation and its sub-relations."""
        return [m for m in self.resolve_members(relation, as_of) if m.kind == ItemType.PATH]

    def resolve_points(self, relation: Relation, as_of: Optional[datetime] = None) -> List[Point]:
        """Get all points contained in a relation and its sub-relations."""
        return [m for m in self.resolve_members(relation, as_of) if m.kind == ItemType.POINT]

    def resolve_relations(
        self,
        relation: Relation,
        as_of: Optional[datetime] = None,
    ) -> List[Relation]:
        """Get all sub-relations contained in a relation, transitively."""
        return [m for m in self.resolve_members(relation, as_of) if m.kind == ItemType.RELATION]

    def resolve_segments(
        self,
        relation: Relation,
        as_of: Optional[datetime] = None,
    ) -> Set[Segment]:
        """
        Get the line segments described by a relation.

        Every resolved point yields a degenerate segment. Every resolved
        path yields one segment per pair of consecutive points; paths with
        fewer than two points yield none. Segments are unordered, so
        duplicates across paths collapse.

        Args:
            relation: Relation to resolve
            as_of: Resolve the revisions current at this time (current if None)

        Returns:
            Set of segments

        Raises:
            APIError: If any member or path point could not be fetched
        """
        segments: Set[Segment] = set()
        resolved = self.resolve_members(relation, as_of)

        for item in resolved:
            if item.kind == ItemType.POINT:
                segments.add(Segment(item, item))

        for item in resolved:
            if item.kind != ItemType.PATH:
                continue
            previous: Optional[Point] = None
            for point_id in item.point_ids:
                point = self.client.fetch(ItemType.POINT, point_id, as_of)
                if previous is not None:
                    segments.add(Segment(previous, point))
                previous = point

        return segments
