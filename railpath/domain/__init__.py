"""Domain layer - Core pathfinding models and errors.

This module contains immutable domain models and typed errors
used throughout the application. No external dependencies.
"""

from .errors import (
    ChainBrokenError,
    ConfigurationError,
    GeometryError,
    NoCandidatesNearAnchorError,
    NoPathFoundError,
    PathfindingError,
    RailPathError,
    SpatialSourceError,
)
from .models import (
    BearingInfo,
    Coordinate,
    FailureKind,
    NodeId,
    PathResult,
    Route,
    RoutePathResult,
    Segment,
    Station,
    is_compound_id,
    parse_compound_id,
)

__all__ = [
    # Models
    "Coordinate",
    "NodeId",
    "Segment",
    "Route",
    "Station",
    "BearingInfo",
    "PathResult",
    "RoutePathResult",
    "FailureKind",
    "is_compound_id",
    "parse_compound_id",
    # Errors
    "RailPathError",
    "PathfindingError",
    "NoCandidatesNearAnchorError",
    "NoPathFoundError",
    "ChainBrokenError",
    "SpatialSourceError",
    "GeometryError",
    "ConfigurationError",
]
