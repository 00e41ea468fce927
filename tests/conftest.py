"""Shared fixtures: small hand-built railway networks."""

import json
from typing import List

import pytest

from railpath.adapters.spatial import GeoJSONRouteSource, GeoJSONSegmentSource
from railpath.config import (
    DataSourceConfig,
    RouteSearchConfig,
    SearchConfig,
    SegmentSearchConfig,
    reset_config,
)
from railpath.container import reset_container
from railpath.domain.models import Route, Segment, Station
from railpath.services import RoutePathfinderService, SegmentPathfinderService


def seg(segment_id, *coords) -> Segment:
    return Segment(id=segment_id, coordinates=tuple((float(x), float(y)) for x, y in coords))


@pytest.fixture(autouse=True)
def _fresh_singletons():
    reset_config()
    reset_container()
    yield
    reset_config()
    reset_container()


@pytest.fixture
def straight_segments() -> List[Segment]:
    """Three segments joined end to end, turning 90 degrees twice."""
    return [
        seg("S1", (0, 0), (0, 1)),
        seg("S2", (0, 1), (1, 1)),
        seg("S3", (1, 1), (1, 2)),
    ]


@pytest.fixture
def stub_segments() -> List[Segment]:
    """A northbound segment meeting a stub that heads straight back south."""
    return [
        seg("A", (0, 0), (0, 0.02)),
        seg("B", (0, 0.02), (0.001, 0.0)),
    ]


@pytest.fixture
def wye_segments(stub_segments) -> List[Segment]:
    """The stub network plus a small turning loop at the junction."""
    loop = seg(
        "C",
        (0, 0.02),
        (0.0001, 0.0202),
        (0, 0.0204),
        (-0.0001, 0.0202),
        (0, 0.02),
    )
    return [*stub_segments, loop]


@pytest.fixture
def triangle_segments() -> List[Segment]:
    """A spur D whose direct link from A reverses, and a turning triangle
    A-B-C that returns into the junction heading the right way."""
    return [
        seg("A", (0, 0), (0, 0.01)),
        seg("B", (0, 0.01), (0, 0.02)),
        seg(
            "C",
            (0, 0.02),
            (0.01, 0.025),
            (0.02, 0.01),
            (0.01, -0.01),
            (0, -0.003),
            (0, 0),
        ),
        seg("D", (0, 0), (0.001, 0.01)),
    ]


@pytest.fixture
def segment_service_factory():
    def build(segments) -> SegmentPathfinderService:
        return SegmentPathfinderService(
            source=GeoJSONSegmentSource.from_segments(segments, DataSourceConfig()),
            search=SearchConfig(),
            settings=SegmentSearchConfig(),
        )

    return build


@pytest.fixture
def stations() -> List[Station]:
    return [
        Station(id=1, name="Alpha", location=(0.0, 0.0)),
        Station(id=2, name="Beta", location=(0.0, 0.1)),
        Station(id=3, name="Gamma", location=(0.0, 0.2)),
        Station(id=4, name="Delta", location=(0.0, 0.3)),
        Station(id=5, name="Omega", location=(10.0, 10.0)),
    ]


@pytest.fixture
def line_routes() -> List[Route]:
    """A northbound line Alpha - Beta - Gamma - Delta plus an isolated route."""
    return [
        Route(10, "Alpha", "Beta", ((0.0, 0.0), (0.0, 0.05), (0.0, 0.1)), 11.1),
        Route(11, "Beta", "Gamma", ((0.0, 0.1), (0.0, 0.15), (0.0, 0.2)), 11.1),
        Route(12, "Gamma", "Delta", ((0.0, 0.2), (0.0, 0.25), (0.0, 0.3)), 11.1),
        Route(20, "Omega", "Psi", ((10.0, 10.0), (10.0, 10.05), (10.0, 10.1)), 11.1),
        # Freight only, must never be used
        Route(30, "Alpha", "Delta", ((0.0, 0.0), (0.01, 0.15), (0.0, 0.3)), 33.0, usage_type=1),
    ]


@pytest.fixture
def route_service(line_routes, stations) -> RoutePathfinderService:
    return RoutePathfinderService(
        source=GeoJSONRouteSource.from_routes(line_routes, stations, DataSourceConfig()),
        search=SearchConfig(),
        settings=RouteSearchConfig(),
    )


def _line_feature(properties, coords):
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "LineString", "coordinates": [list(c) for c in coords]},
    }


def _write_collection(path, features):
    path.write_text(
        json.dumps({"type": "FeatureCollection", "features": features}),
        encoding="utf-8",
    )


@pytest.fixture
def geojson_data_dir(tmp_path, straight_segments, line_routes, stations):
    """GeoJSON files holding the straight segments and the line routes."""
    _write_collection(
        tmp_path / "railway_parts.geojson",
        [_line_feature({"id": s.id}, s.coordinates) for s in straight_segments]
        + [{"type": "Feature", "properties": {"id": "P"},
            "geometry": {"type": "Point", "coordinates": [0, 0]}}],
    )
    _write_collection(
        tmp_path / "railway_routes.geojson",
        [
            _line_feature(
                {
                    "track_id": r.track_id,
                    "from_station": r.from_station,
                    "to_station": r.to_station,
                    "length_km": r.length_km,
                    "description": f"{r.from_station} - {r.to_station}",
                    "usage_type": r.usage_type,
                },
                r.coordinates,
            )
            for r in line_routes
        ],
    )
    _write_collection(
        tmp_path / "stations.geojson",
        [
            {
                "type": "Feature",
                "properties": {"id": s.id, "name": s.name},
                "geometry": {"type": "Point", "coordinates": list(s.location)},
            }
            for s in stations
        ],
    )
    return tmp_path
