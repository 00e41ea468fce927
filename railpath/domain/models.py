"""Immutable domain models for the railway pathfinder.

All models are frozen dataclasses with slots for memory efficiency.
These models have no external dependencies and represent the core
concepts shared by the segment-level and route-level pathfinders.

Coordinates are always ``(longitude, latitude)`` pairs, the GeoJSON
axis order used by the spatial data sources.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional, Tuple, Union

Coordinate = Tuple[float, float]
NodeId = Union[str, int]


class FailureKind(Enum):
    """Expected pathfinding failures, returned as data rather than raised."""

    NO_CANDIDATES_NEAR_ANCHOR = auto()
    NO_PATH_FOUND = auto()
    CHAIN_BROKEN = auto()


def _validate_coordinates(owner: str, coordinates: Tuple[Coordinate, ...]) -> None:
    if len(coordinates) < 2:
        raise ValueError(
            f"{owner} needs at least 2 coordinates, got {len(coordinates)}"
        )


@dataclass(frozen=True, slots=True)
class Segment:
    """A single digitized piece of railway track.

    Attributes:
        id: Segment identifier. Split segments use compound identifiers
            of the form ``"<parent>-<half>"`` (see ``parse_compound_id``).
        coordinates: Ordered polyline, at least two points.
    """

    id: str
    coordinates: Tuple[Coordinate, ...]

    def __post_init__(self) -> None:
        _validate_coordinates(f"Segment {self.id}", self.coordinates)

    @property
    def start(self) -> Coordinate:
        """First vertex of the polyline."""
        return self.coordinates[0]

    @property
    def end(self) -> Coordinate:
        """Last vertex of the polyline."""
        return self.coordinates[-1]


@dataclass(frozen=True, slots=True)
class Route:
    """A named railway connection between two stations.

    Attributes:
        track_id: Route identifier
        from_station: Name of the station at the start of the geometry
        to_station: Name of the station at the end of the geometry
        coordinates: Ordered polyline, at least two points
        length_km: Precomputed route length
        description: Free-text description shown to users
        usage_type: 0 for passenger routes, other values are ignored
            by the journey planner
    """

    track_id: int
    from_station: str
    to_station: str
    coordinates: Tuple[Coordinate, ...]
    length_km: float
    description: str = ""
    usage_type: int = 0

    def __post_init__(self) -> None:
        _validate_coordinates(f"Route {self.track_id}", self.coordinates)


@dataclass(frozen=True, slots=True)
class Station:
    """A railway station used as a journey anchor."""

    id: int
    name: str
    location: Coordinate


@dataclass(frozen=True, slots=True)
class BearingInfo:
    """Bearing-relevant coordinates cached per graph node.

    The labels identify the node's two physical ends: station names at
    the route level, quantized coordinate keys at the segment level.
    Search state and backtracking checks only ever look at these four
    points, never at the full polyline.

    Attributes:
        node_id: Identifier of the segment or route
        start_label: Label of the first vertex
        end_label: Label of the last vertex
        start: First vertex
        near_start: Vertex adjacent to the first vertex
        near_end: Vertex adjacent to the last vertex
        end: Last vertex
        length_m: Node length in meters
    """

    node_id: NodeId
    start_label: str
    end_label: str
    start: Coordinate
    near_start: Coordinate
    near_end: Coordinate
    end: Coordinate
    length_m: float

    def other_label(self, label: str) -> Optional[str]:
        """Return the label of the opposite end, or None if not an end."""
        if label == self.start_label:
            return self.end_label
        if label == self.end_label:
            return self.start_label
        return None

    def has_label(self, label: str) -> bool:
        return label == self.start_label or label == self.end_label


@dataclass(frozen=True, slots=True)
class PathResult:
    """Result of a segment-level pathfinding call.

    A successful result carries the node sequence and the merged polyline.
    A failed one has empty sequences, an ``error`` message and a
    ``failure`` kind. ``has_backtracking`` stays True when a sharp
    reversal could not be avoided within the alternative distance cap.

    Attributes:
        node_ids: Ordered segment identifiers
        coordinates: Merged, consistently oriented polyline
        total_distance_m: Haversine length of ``coordinates``
        has_backtracking: Unresolved backtracking flag
        error: Human-readable failure description
        failure: Failure kind if no path was produced
    """

    node_ids: Tuple[str, ...] = field(default_factory=tuple)
    coordinates: Tuple[Coordinate, ...] = field(default_factory=tuple)
    total_distance_m: float = 0.0
    has_backtracking: bool = False
    error: Optional[str] = None
    failure: Optional[FailureKind] = None

    @classmethod
    def failed(cls, failure: FailureKind, error: str) -> PathResult:
        return cls(error=error, failure=failure)

    @property
    def is_found(self) -> bool:
        """Check if a path was produced."""
        return self.failure is None and len(self.node_ids) > 0

    @property
    def num_nodes(self) -> int:
        return len(self.node_ids)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape consumed by map and form clients."""
        data: Dict[str, Any] = {
            "nodeIds": list(self.node_ids),
            "coordinates": [list(c) for c in self.coordinates],
            "hasBacktracking": self.has_backtracking,
            "totalDistance": self.total_distance_m,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class RoutePathResult:
    """Result of a route-level journey search.

    Attributes:
        routes: Ordered routes forming the journey
        total_distance_km: Sum of the route lengths
        has_backtracking: True if any station-pair leg kept a flagged path
        error: Human-readable failure description
        failure: Failure kind if no journey was produced
    """

    routes: Tuple[Route, ...] = field(default_factory=tuple)
    total_distance_km: float = 0.0
    has_backtracking: bool = False
    error: Optional[str] = None
    failure: Optional[FailureKind] = None

    @classmethod
    def failed(cls, failure: FailureKind, error: str) -> RoutePathResult:
        return cls(error=error, failure=failure)

    @property
    def is_found(self) -> bool:
        return self.failure is None and len(self.routes) > 0

    @property
    def track_ids(self) -> Tuple[int, ...]:
        return tuple(route.track_id for route in self.routes)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "routes": [
                {
                    "track_id": r.track_id,
                    "from_station": r.from_station,
                    "to_station": r.to_station,
                    "description": r.description,
                    "length_km": r.length_km,
                }
                for r in self.routes
            ],
            "totalDistance": self.total_distance_km,
            "hasBacktracking": self.has_backtracking,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def is_compound_id(segment_id: str) -> bool:
    """Check if a segment id names one half of a split segment."""
    return "-" in segment_id


def parse_compound_id(segment_id: str) -> Optional[Tuple[str, int]]:
    """Parse ``"<parent>-<half>"`` into ``(parent, half)``.

    Returns None for plain ids and for malformed compound ids, including
    halves other than 1 and 2.
    """
    if not is_compound_id(segment_id):
        return None

    parts = segment_id.split("-")
    if len(parts) != 2:
        return None

    parent, half_str = parts
    try:
        half = int(half_str)
    except ValueError:
        return None

    if half not in (1, 2):
        return None
    return parent, half
