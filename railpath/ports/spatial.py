"""Spatial ports - Abstractions for loading candidate graph nodes.

These protocols define the contract between the pathfinding services and
the spatial data source. A source answers buffered proximity queries and
nothing else: it does not filter, connect or de-duplicate what it returns.

Buffers are planar circles (EPSG:3857) around the anchor geometries,
re-projected to WGS84. Returned nodes intersect the buffer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence

if TYPE_CHECKING:
    from ..domain.models import Coordinate, Route, Segment


class SegmentSourcePort(Protocol):
    """Port for loading railway track segments.

    Implementations: adapters/spatial/geojson_source.py,
    adapters/spatial/postgis_source.py
    """

    async def fetch_segments_near_segments(
        self, segment_ids: Sequence[str], buffer_m: float
    ) -> Sequence[Segment]:
        """Load segments intersecting a buffer around known segments.

        Args:
            segment_ids: Anchor segment identifiers. Unknown ids
                contribute no buffer.
            buffer_m: Buffer radius in meters.

        Returns:
            Segments intersecting the buffer, anchors included.
            Empty if nothing matches.

        Raises:
            SpatialSourceError: If the source cannot be queried.
        """
        ...

    async def fetch_segments_near_point(
        self, coordinate: Coordinate, buffer_m: float
    ) -> Sequence[Segment]:
        """Load segments intersecting a buffer around a coordinate.

        Args:
            coordinate: ``(longitude, latitude)`` anchor.
            buffer_m: Buffer radius in meters.

        Returns:
            Segments intersecting the buffer.

        Raises:
            SpatialSourceError: If the source cannot be queried.
        """
        ...


class RouteSourcePort(Protocol):
    """Port for loading named passenger routes between stations.

    Implementations: adapters/spatial/geojson_source.py,
    adapters/spatial/postgis_source.py
    """

    async def find_routes_near_station(
        self, station_id: int, tolerance_m: float
    ) -> Sequence[Route]:
        """Find passenger routes passing within ``tolerance_m`` of a station.

        Args:
            station_id: Station identifier.
            tolerance_m: Maximum distance from the station in meters.

        Returns:
            Matching routes. Empty for unknown stations.

        Raises:
            SpatialSourceError: If the source cannot be queried.
        """
        ...

    async def fetch_routes_near_stations(
        self, station_ids: Sequence[int], buffer_m: float
    ) -> Sequence[Route]:
        """Load passenger routes intersecting a buffer around stations.

        Args:
            station_ids: Anchor station identifiers.
            buffer_m: Buffer radius in meters.

        Returns:
            Routes intersecting the union of the station buffers.

        Raises:
            SpatialSourceError: If the source cannot be queried.
        """
        ...
