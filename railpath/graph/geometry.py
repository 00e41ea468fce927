"""Geographic helpers: distances, bearings and point projection.

Coordinates are ``(longitude, latitude)`` pairs. Distances are great-circle
distances on a sphere of radius 6371 km (the Haversine model), computed
with geopy; projections are done in plain lon/lat space, which is accurate
enough for the short vertex pairs of digitized track.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from geopy.distance import great_circle

from ..domain.models import Coordinate, Segment

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True, slots=True)
class Projection:
    """Closest point of a polyline to a query coordinate.

    Attributes:
        segment_index: Index ``i`` of the vertex pair ``(i, i + 1)``
        point: Projected point on that vertex pair
        distance_m: Distance from the query coordinate to ``point``
    """

    segment_index: int
    point: Coordinate
    distance_m: float


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two lon/lat coordinates."""
    # geopy expects (lat, lon)
    return great_circle((a[1], a[0]), (b[1], b[0]), radius=EARTH_RADIUS_KM).meters


def polyline_length_m(coordinates: Sequence[Coordinate]) -> float:
    """Sum of Haversine distances between consecutive vertices."""
    return sum(
        haversine_m(coordinates[i], coordinates[i + 1])
        for i in range(len(coordinates) - 1)
    )


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial great-circle bearing from ``a`` to ``b``.

    Parameters
    ----------
    a, b:
        ``(longitude, latitude)`` coordinates in degrees.

    Returns
    -------
    float
        Compass bearing in degrees, normalized to ``[0, 360)``.
    """
    lon1, lat1 = math.radians(a[0]), math.radians(a[1])
    lon2, lat2 = math.radians(b[0]), math.radians(b[1])

    y = math.sin(lon2 - lon1) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(
        lat2
    ) * math.cos(lon2 - lon1)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def bearing_difference(a: float, b: float) -> float:
    """Absolute angle between two bearings, normalized into ``[0, 180]``."""
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def project_onto_segment(
    point: Coordinate, start: Coordinate, end: Coordinate
) -> Coordinate:
    """Perpendicular foot of ``point`` on the segment ``start``-``end``.

    The foot is clamped to the segment ends when it falls outside. A
    degenerate segment (``start == end``) projects onto ``start``.
    """
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        return start

    t = ((point[0] - start[0]) * dx + (point[1] - start[1]) * dy) / length_sq
    if t < 0:
        return start
    if t > 1:
        return end
    return (start[0] + t * dx, start[1] + t * dy)


def project_onto_polyline(
    point: Coordinate, coordinates: Sequence[Coordinate]
) -> Optional[Projection]:
    """Project ``point`` onto the closest vertex pair of a polyline.

    Parameters
    ----------
    point:
        Query coordinate.
    coordinates:
        Polyline vertices.

    Returns
    -------
    Projection or None
        The globally closest projection, or None for polylines with fewer
        than two vertices. Ties keep the earliest vertex pair.
    """
    best: Optional[Projection] = None

    for i in range(len(coordinates) - 1):
        projected = project_onto_segment(point, coordinates[i], coordinates[i + 1])
        distance = haversine_m(point, projected)
        if best is None or distance < best.distance_m:
            best = Projection(segment_index=i, point=projected, distance_m=distance)

    return best


def point_to_polyline_distance_m(
    point: Coordinate, coordinates: Sequence[Coordinate]
) -> float:
    projection = project_onto_polyline(point, coordinates)
    return projection.distance_m if projection is not None else math.inf


def find_nodes_containing(
    segments: Iterable[Segment],
    coordinate: Coordinate,
    tolerance_m: float,
) -> List[str]:
    """Return ids of segments whose polyline passes within ``tolerance_m``.

    The coordinate may lie anywhere along a vertex pair, not only on a
    vertex. Ids are returned in input order.
    """
    matching: List[str] = []

    for segment in segments:
        coords = segment.coordinates
        for i in range(len(coords) - 1):
            projected = project_onto_segment(coordinate, coords[i], coords[i + 1])
            if haversine_m(coordinate, projected) <= tolerance_m:
                matching.append(segment.id)
                break

    return matching
