"""
Geometry export for resolved segments.

Converts segments into shapely geometries using (lon, lat) coordinates.
"""

from typing import Iterable, Optional, Tuple, Union

from shapely.geometry import LineString, MultiLineString
from shapely.geometry import Point as ShapelyPoint

from geohistory.data.items import Segment


def segment_geometry(segment: Segment) -> Union[ShapelyPoint, LineString]:
    """
    Convert one segment to a geometry.

    Returns:
        A Point for degenerate segments, a two-vertex LineString otherwise
    """
    if segment.is_degenerate:
        return ShapelyPoint(segment.a.coordinates)
    return LineString([segment.a.coordinates, segment.b.coordinates])


def segments_to_multilinestring(segments: Iterable[Segment]) -> MultiLineString:
    """
    Combine the non-degenerate segments into one MultiLineString.

    Lines are ordered by endpoint identifiers so the output is stable.
    """
    lines = [
        segment_geometry(segment)
        for segment in sorted(
            (s for s in segments if not s.is_degenerate),
            key=lambda s: tuple(sorted((int(s.a.id), int(s.b.id)))),
        )
    ]
    return MultiLineString(lines)


def segments_bounds(
    segments: Iterable[Segment],
) -> Optional[Tuple[float, float, float, float]]:
    """
    Get the bounding box of all segment endpoints.

    Returns:
        (min_lon, min_lat, max_lon, max_lat), or None for no segments
    """
    lons = []
    lats = []
    for segment in segments:
        for point in segment.endpoints:
            lons.append(point.lon)
            lats.append(point.lat)
    if not lons:
        return None
    return (min(lons), min(lats), max(lons), max(lats))
