"""PostGIS spatial source adapters.

Queries run on a psycopg2 ``ThreadedConnectionPool`` and are moved off
the event loop with ``asyncio.to_thread``. Buffers are built in Web
Mercator (``ST_Transform(..., 3857)``) and station proximity is measured
on the geography type, in meters.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from ...config import DataSourceConfig, get_config
from ...domain.errors import ConfigurationError, GeometryError, SpatialSourceError
from ...domain.models import Coordinate, Route, Segment

SEGMENTS_NEAR_SEGMENTS_SQL = """
    WITH anchors AS (
      SELECT geometry
      FROM railway_parts
      WHERE id::TEXT = ANY(%s)
    ),
    search_area AS (
      SELECT ST_Transform(
        ST_Buffer(ST_Transform(ST_Collect(geometry), 3857), %s),
        4326
      ) AS buffer_geom
      FROM anchors
    )
    SELECT id::TEXT AS id, ST_AsGeoJSON(rp.geometry) AS geometry_json
    FROM railway_parts rp, search_area
    WHERE ST_Intersects(rp.geometry, search_area.buffer_geom)
      AND rp.geometry IS NOT NULL
    ORDER BY id
"""

SEGMENTS_NEAR_POINT_SQL = """
    WITH search_area AS (
      SELECT ST_Transform(
        ST_Buffer(
          ST_Transform(ST_SetSRID(ST_MakePoint(%s, %s), 4326), 3857),
          %s
        ),
        4326
      ) AS buffer_geom
    )
    SELECT id::TEXT AS id, ST_AsGeoJSON(rp.geometry) AS geometry_json
    FROM railway_parts rp, search_area
    WHERE ST_Intersects(rp.geometry, search_area.buffer_geom)
      AND rp.geometry IS NOT NULL
    ORDER BY id
"""

ROUTES_NEAR_STATION_SQL = """
    SELECT DISTINCT
      r.track_id, r.from_station, r.to_station, r.description,
      r.length_km, r.usage_type, ST_AsGeoJSON(r.geometry) AS geometry_json
    FROM railway_routes r, stations s
    WHERE s.id = %s
      AND ST_DWithin(r.geometry::geography, s.coordinates::geography, %s)
      AND r.usage_type = 0
    ORDER BY r.track_id
"""

ROUTES_NEAR_STATIONS_SQL = """
    WITH station_points AS (
      SELECT coordinates
      FROM stations
      WHERE id = ANY(%s)
    ),
    search_area AS (
      SELECT ST_Transform(
        ST_Buffer(ST_Transform(ST_Collect(coordinates), 3857), %s),
        4326
      ) AS buffer_geom
      FROM station_points
    )
    SELECT DISTINCT
      r.track_id, r.from_station, r.to_station, r.description,
      r.length_km, r.usage_type, ST_AsGeoJSON(r.geometry) AS geometry_json
    FROM railway_routes r, search_area
    WHERE ST_Intersects(r.geometry, search_area.buffer_geom)
      AND r.usage_type = 0
    ORDER BY r.track_id
"""


def _parse_line(geometry_json: Optional[str], node_id: str) -> Optional[List[Coordinate]]:
    """Decode an ``ST_AsGeoJSON`` LineString, or None for other types."""
    if geometry_json is None:
        return None
    try:
        geometry = json.loads(geometry_json)
        if geometry.get("type") != "LineString":
            return None
        return [(float(c[0]), float(c[1])) for c in geometry["coordinates"]]
    except (ValueError, TypeError, KeyError, IndexError) as e:
        raise GeometryError("Malformed geometry from database", node_id=node_id, cause=e)


@dataclass
class _PostGISSource:
    """Connection pool handling shared by the PostGIS adapters.

    Attributes:
        config: Data source configuration (DSN, pool sizes)
        pool: Optional pre-built pool; created from ``config`` on first use
    """

    config: DataSourceConfig = field(default_factory=lambda: get_config().source)
    pool: Optional[Any] = field(default=None, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if self.config.pool_min_connections > self.config.pool_max_connections:
            raise ConfigurationError(
                "pool_min_connections exceeds pool_max_connections",
                setting_name="pool_min_connections",
                expected_type="int <= pool_max_connections",
            )

    def _get_pool(self) -> Any:
        if self.pool is None:
            try:
                self.pool = ThreadedConnectionPool(
                    self.config.pool_min_connections,
                    self.config.pool_max_connections,
                    dsn=self.config.dsn,
                    cursor_factory=RealDictCursor,
                )
            except psycopg2.Error as e:
                raise SpatialSourceError(
                    "Failed to connect to PostGIS", source="postgis", cause=e
                )
            self._logger.info(
                "Connection pool created",
                extra={"max_connections": self.config.pool_max_connections},
            )
        return self.pool

    def _fetch_all(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            raise SpatialSourceError("Spatial query failed", source="postgis", cause=e)
        finally:
            pool.putconn(conn)

    async def _query(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        rows = await asyncio.to_thread(self._fetch_all, sql, params)
        self._logger.debug("Spatial query returned", extra={"rows": len(rows)})
        return rows

    def close(self) -> None:
        """Close every pooled connection."""
        if self.pool is not None:
            self.pool.closeall()
            self.pool = None


@dataclass
class PostGISSegmentSource(_PostGISSource):
    """Segment source reading the ``railway_parts`` table.

    This adapter implements SegmentSourcePort.
    """

    def _to_segments(self, rows: List[Dict[str, Any]]) -> List[Segment]:
        segments: List[Segment] = []
        for row in rows:
            segment_id = str(row["id"])
            coords = _parse_line(row.get("geometry_json"), segment_id)
            if coords is None or len(coords) < 2:
                continue
            segments.append(Segment(id=segment_id, coordinates=tuple(coords)))
        return segments

    async def fetch_segments_near_segments(
        self, segment_ids: Sequence[str], buffer_m: float
    ) -> List[Segment]:
        if not segment_ids:
            return []
        rows = await self._query(
            SEGMENTS_NEAR_SEGMENTS_SQL, [list(segment_ids), buffer_m]
        )
        return self._to_segments(rows)

    async def fetch_segments_near_point(
        self, coordinate: Coordinate, buffer_m: float
    ) -> List[Segment]:
        rows = await self._query(
            SEGMENTS_NEAR_POINT_SQL, [coordinate[0], coordinate[1], buffer_m]
        )
        return self._to_segments(rows)


@dataclass
class PostGISRouteSource(_PostGISSource):
    """Route source reading the ``railway_routes`` and ``stations`` tables.

    This adapter implements RouteSourcePort.
    """

    def _to_routes(self, rows: List[Dict[str, Any]]) -> List[Route]:
        routes: List[Route] = []
        for row in rows:
            track_id = int(row["track_id"])
            coords = _parse_line(row.get("geometry_json"), str(track_id))
            if coords is None or len(coords) < 2:
                continue
            # NUMERIC columns come back as Decimal
            routes.append(
                Route(
                    track_id=track_id,
                    from_station=row["from_station"],
                    to_station=row["to_station"],
                    coordinates=tuple(coords),
                    length_km=float(row["length_km"]),
                    description=row.get("description") or "",
                    usage_type=int(row.get("usage_type") or 0),
                )
            )
        return routes

    async def find_routes_near_station(
        self, station_id: int, tolerance_m: float
    ) -> List[Route]:
        rows = await self._query(ROUTES_NEAR_STATION_SQL, [station_id, tolerance_m])
        return self._to_routes(rows)

    async def fetch_routes_near_stations(
        self, station_ids: Sequence[int], buffer_m: float
    ) -> List[Route]:
        if not station_ids:
            return []
        rows = await self._query(
            ROUTES_NEAR_STATIONS_SQL, [list(station_ids), buffer_m]
        )
        return self._to_routes(rows)
