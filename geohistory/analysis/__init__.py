"""Relation resolution and geometry export."""

from geohistory.analysis.geometry import (
    segment_geometry,
    segments_bounds,
    segments_to_multilinestring,
)
from geohistory.analysis.relations import RelationResolver

__all__ = [
    "RelationResolver",
    "segment_geometry",
    "segments_bounds",
    "segments_to_multilinestring",
]
