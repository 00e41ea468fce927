"""Services layer - Application orchestration.

This module contains the services that drive the spatial sources and
the graph algorithms to fulfill the pathfinding use cases.

Available services:
- SegmentPathfinderService: Stitches track segments between ids or coordinates
- RoutePathfinderService: Plans station-to-station journeys, with via stations
- BufferRetryStrategy: Widens the spatial query until a search succeeds
"""

from .buffer_retry import BufferRetryStrategy
from .route_pathfinder import RoutePathfinderService
from .segment_pathfinder import SegmentPathfinderService

__all__ = ["SegmentPathfinderService", "RoutePathfinderService", "BufferRetryStrategy"]
