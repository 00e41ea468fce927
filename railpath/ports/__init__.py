"""Ports layer - Abstract interfaces (Protocols) for the application.

Ports define the contracts between the pathfinding services and the
spatial data sources. They enable dependency injection and make the
system testable with in-memory sources.
"""

from .spatial import RouteSourcePort, SegmentSourcePort

__all__ = [
    "SegmentSourcePort",
    "RouteSourcePort",
]
