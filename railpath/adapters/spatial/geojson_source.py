"""GeoJSON spatial source adapters.

These adapters load GeoJSON FeatureCollections from disk once, project
every LineString to Web Mercator (EPSG:3857) and index it in a shapely
STRtree. Buffered queries build the search area in the same planar
projection, so a buffer of ``n`` meters matches what a PostGIS
``ST_Buffer`` on ``ST_Transform(geom, 3857)`` would return.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import shapely
from pyproj import Transformer
from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.strtree import STRtree

from ...config import DataSourceConfig, get_config
from ...domain.errors import GeometryError, SpatialSourceError
from ...domain.models import Coordinate, Route, Segment, Station
from ...graph.geometry import point_to_polyline_distance_m, polyline_length_m

_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


def to_mercator(geometry: BaseGeometry) -> BaseGeometry:
    """Project a lon/lat shapely geometry to Web Mercator meters."""
    return shapely.transform(geometry, _TO_MERCATOR.transform, interleaved=False)


def read_features(path: Path, source: str) -> List[Dict[str, Any]]:
    """Read the features of a GeoJSON FeatureCollection.

    Raises:
        SpatialSourceError: If the file is missing or not valid GeoJSON.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SpatialSourceError(
            f"Failed to read GeoJSON file {path}",
            source=source,
            cause=e,
        )

    if data.get("type") != "FeatureCollection":
        raise SpatialSourceError(
            f"Expected a FeatureCollection in {path}, got {data.get('type')!r}",
            source=source,
        )
    return list(data.get("features") or [])


def _line_coordinates(feature: Mapping[str, Any]) -> Optional[List[Coordinate]]:
    geometry = feature.get("geometry") or {}
    if geometry.get("type") != "LineString":
        return None
    try:
        return [(float(c[0]), float(c[1])) for c in geometry.get("coordinates", [])]
    except (TypeError, ValueError, IndexError) as e:
        raise GeometryError(
            "Malformed LineString coordinates",
            node_id=str(feature.get("id")),
            cause=e,
        )


def _feature_id(feature: Mapping[str, Any], key: str) -> Any:
    properties = feature.get("properties") or {}
    value = properties.get(key, feature.get("id"))
    if value is None:
        raise GeometryError(f"Feature without '{key}' property")
    return value


@dataclass
class _LineIndex:
    """STRtree over projected polylines, queried by intersection."""

    geometries: List[BaseGeometry]
    tree: Optional[STRtree] = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.geometries:
            self.tree = STRtree(self.geometries)

    def query(self, area: BaseGeometry) -> List[int]:
        if self.tree is None or area.is_empty:
            return []
        indices = self.tree.query(area, predicate="intersects")
        return sorted(int(i) for i in indices)


@dataclass
class GeoJSONSegmentSource:
    """Segment source backed by a GeoJSON file of railway parts.

    This adapter implements SegmentSourcePort. Features must be
    LineStrings with an ``id`` property (or feature id); other geometry
    types are skipped.

    Attributes:
        config: Data source configuration (paths)
    """

    config: DataSourceConfig = field(default_factory=lambda: get_config().source)
    _logger: logging.Logger = field(init=False, repr=False)

    # Cached data
    _segments: Optional[List[Segment]] = field(default=None, repr=False)
    _positions: Dict[str, int] = field(default_factory=dict, repr=False)
    _index: Optional[_LineIndex] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_segments(
        cls, segments: Iterable[Segment], config: Optional[DataSourceConfig] = None
    ) -> GeoJSONSegmentSource:
        """Build a source over in-memory segments instead of a file."""
        source = cls(config=config or DataSourceConfig())
        source._build(list(segments))
        return source

    def _build(self, segments: List[Segment]) -> None:
        self._segments = segments
        self._positions = {}
        for i, segment in enumerate(segments):
            self._positions.setdefault(segment.id, i)
        self._index = _LineIndex(
            [to_mercator(LineString(s.coordinates)) for s in segments]
        )
        self._logger.info("Segments indexed", extra={"segments": len(segments)})

    def _ensure_loaded(self) -> None:
        if self._segments is not None:
            return

        path = self.config.segments_path
        self._logger.debug("Loading segments", extra={"path": str(path)})

        segments: List[Segment] = []
        skipped = 0
        for feature in read_features(path, "geojson"):
            coords = _line_coordinates(feature)
            if coords is None or len(coords) < 2:
                skipped += 1
                continue
            segment_id = str(_feature_id(feature, "id"))
            segments.append(Segment(id=segment_id, coordinates=tuple(coords)))

        if skipped:
            self._logger.debug("Skipped non-LineString features", extra={"count": skipped})
        self._build(segments)

    def _select(self, area: BaseGeometry) -> List[Segment]:
        assert self._segments is not None and self._index is not None
        return [self._segments[i] for i in self._index.query(area)]

    async def fetch_segments_near_segments(
        self, segment_ids: Sequence[str], buffer_m: float
    ) -> List[Segment]:
        """Load segments intersecting a buffer around known segments."""
        self._ensure_loaded()
        assert self._index is not None

        anchors = [
            self._index.geometries[self._positions[segment_id]]
            for segment_id in segment_ids
            if segment_id in self._positions
        ]
        if not anchors:
            return []

        return self._select(unary_union(anchors).buffer(buffer_m))

    async def fetch_segments_near_point(
        self, coordinate: Coordinate, buffer_m: float
    ) -> List[Segment]:
        """Load segments intersecting a buffer around a coordinate."""
        self._ensure_loaded()
        return self._select(to_mercator(Point(coordinate)).buffer(buffer_m))


@dataclass
class GeoJSONRouteSource:
    """Route source backed by GeoJSON files of routes and stations.

    This adapter implements RouteSourcePort. Only passenger routes
    (``usage_type == 0``) are ever returned.

    Attributes:
        config: Data source configuration (paths)
    """

    config: DataSourceConfig = field(default_factory=lambda: get_config().source)
    _logger: logging.Logger = field(init=False, repr=False)

    # Cached data
    _routes: Optional[List[Route]] = field(default=None, repr=False)
    _stations: Dict[int, Station] = field(default_factory=dict, repr=False)
    _index: Optional[_LineIndex] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_routes(
        cls,
        routes: Iterable[Route],
        stations: Iterable[Station],
        config: Optional[DataSourceConfig] = None,
    ) -> GeoJSONRouteSource:
        """Build a source over in-memory routes and stations."""
        source = cls(config=config or DataSourceConfig())
        source._build(list(routes), list(stations))
        return source

    def _build(self, routes: List[Route], stations: List[Station]) -> None:
        self._routes = [r for r in routes if r.usage_type == 0]
        self._stations = {s.id: s for s in stations}
        self._index = _LineIndex(
            [to_mercator(LineString(r.coordinates)) for r in self._routes]
        )
        self._logger.info(
            "Routes indexed",
            extra={
                "routes": len(self._routes),
                "ignored": len(routes) - len(self._routes),
                "stations": len(self._stations),
            },
        )

    def _ensure_loaded(self) -> None:
        if self._routes is not None:
            return

        self._logger.debug(
            "Loading routes",
            extra={
                "routes_path": str(self.config.routes_path),
                "stations_path": str(self.config.stations_path),
            },
        )

        routes: List[Route] = []
        for feature in read_features(self.config.routes_path, "geojson"):
            coords = _line_coordinates(feature)
            if coords is None or len(coords) < 2:
                continue
            properties = feature.get("properties") or {}
            length_km = properties.get("length_km")
            routes.append(
                Route(
                    track_id=int(_feature_id(feature, "track_id")),
                    from_station=str(properties.get("from_station", "")),
                    to_station=str(properties.get("to_station", "")),
                    coordinates=tuple(coords),
                    length_km=(
                        float(length_km)
                        if length_km is not None
                        else polyline_length_m(coords) / 1000.0
                    ),
                    description=str(properties.get("description") or ""),
                    usage_type=int(properties.get("usage_type") or 0),
                )
            )

        stations: List[Station] = []
        for feature in read_features(self.config.stations_path, "geojson"):
            geometry = feature.get("geometry") or {}
            if geometry.get("type") != "Point":
                continue
            lon, lat = geometry["coordinates"][:2]
            properties = feature.get("properties") or {}
            stations.append(
                Station(
                    id=int(_feature_id(feature, "id")),
                    name=str(properties.get("name", "")),
                    location=(float(lon), float(lat)),
                )
            )

        self._build(routes, stations)

    def get_station(self, station_id: int) -> Optional[Station]:
        self._ensure_loaded()
        return self._stations.get(station_id)

    async def find_routes_near_station(
        self, station_id: int, tolerance_m: float
    ) -> List[Route]:
        """Find passenger routes passing within ``tolerance_m`` of a station."""
        self._ensure_loaded()
        assert self._routes is not None and self._index is not None

        station = self._stations.get(station_id)
        if station is None:
            self._logger.debug("Unknown station", extra={"station_id": station_id})
            return []

        # Mercator scales ground distances by sec(latitude); widen the
        # planar prefilter accordingly and let the geodesic check decide.
        scale = 1.0 / max(math.cos(math.radians(station.location[1])), 0.01)
        area = to_mercator(Point(station.location)).buffer(tolerance_m * scale + 1.0)
        matches = [
            self._routes[i]
            for i in self._index.query(area)
            if point_to_polyline_distance_m(
                station.location, self._routes[i].coordinates
            )
            <= tolerance_m
        ]
        return sorted(matches, key=lambda r: r.track_id)

    async def fetch_routes_near_stations(
        self, station_ids: Sequence[int], buffer_m: float
    ) -> List[Route]:
        """Load passenger routes intersecting a buffer around stations."""
        self._ensure_loaded()
        assert self._routes is not None and self._index is not None

        points = [
            to_mercator(Point(self._stations[sid].location))
            for sid in station_ids
            if sid in self._stations
        ]
        if not points:
            return []

        area = unary_union(points).buffer(buffer_m)
        return [self._routes[i] for i in self._index.query(area)]
