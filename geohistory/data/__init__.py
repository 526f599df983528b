"""Data layer: item model, caches and the cache-backed API client."""

from geohistory.data.items import (
    GeographicalItem,
    Identifier,
    ItemType,
    Path,
    Point,
    Relation,
    RelationMember,
    Segment,
    Version,
    VersionedObject,
)

__all__ = [
    "GeographicalItem",
    "Identifier",
    "ItemType",
    "Path",
    "Point",
    "Relation",
    "RelationMember",
    "Segment",
    "Version",
    "VersionedObject",
]
