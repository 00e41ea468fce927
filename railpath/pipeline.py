"""High-level entry points for the railway pathfinder.

Each function resolves its service from the default container and runs
one pathfinding call. Search failures are returned as data on the
result objects; only source and geometry errors raise.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import ObservabilityConfig, get_config
from .container import Container, get_container
from .domain.models import Coordinate, PathResult, RoutePathResult
from .services import RoutePathfinderService, SegmentPathfinderService


def configure_logging(config: Optional[ObservabilityConfig] = None) -> None:
    """Apply the configured log level and format to the root logger."""
    config = config or get_config().observability
    logging.basicConfig(level=config.level.upper(), format=config.format)


async def find_path(
    start_id: str, end_id: str, container: Optional[Container] = None
) -> PathResult:
    """Find a segment path between two segment ids."""
    service = (container or get_container()).resolve(SegmentPathfinderService)
    return await service.find_path(start_id, end_id)


async def find_path_from_coordinates(
    start: Coordinate,
    end: Coordinate,
    truncate_edges: Optional[bool] = None,
    container: Optional[Container] = None,
) -> PathResult:
    """Find a segment path between two coordinates lying on track.

    ``truncate_edges`` of None falls back to the configured value.
    """
    service = (container or get_container()).resolve(SegmentPathfinderService)
    return await service.find_path_from_coordinates(start, end, truncate_edges)


async def find_route_path_between_stations(
    from_station: int,
    to_station: int,
    via_stations: Sequence[int] = (),
    container: Optional[Container] = None,
) -> RoutePathResult:
    """Plan a journey between two stations, optionally via others."""
    service = (container or get_container()).resolve(RoutePathfinderService)
    return await service.find_route_path(from_station, to_station, via_stations)
