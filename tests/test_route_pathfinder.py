import pytest

from railpath.adapters.spatial import GeoJSONRouteSource
from railpath.config import RouteSearchConfig, SearchConfig
from railpath.domain.errors import NoCandidatesNearAnchorError, NoPathFoundError
from railpath.domain.models import FailureKind, Route, Station
from railpath.services import RoutePathfinderService


@pytest.mark.asyncio
async def test_routes_near_station_uses_smallest_tolerance(route_service):
    routes = await route_service.routes_near_station(2)
    assert [r.track_id for r in routes] == [10, 11]


@pytest.mark.asyncio
async def test_routes_near_unknown_station(route_service):
    assert await route_service.routes_near_station(99) == []


@pytest.mark.asyncio
async def test_direct_journey(route_service):
    result = await route_service.find_route_path(1, 4)

    assert result.is_found
    assert result.track_ids == (10, 11, 12)
    assert result.total_distance_km == pytest.approx(33.3)
    assert result.has_backtracking is False


@pytest.mark.asyncio
async def test_freight_routes_never_used(route_service):
    result = await route_service.find_route_path(1, 4)
    assert 30 not in result.track_ids


@pytest.mark.asyncio
async def test_journey_via_station_keeps_direction(route_service):
    result = await route_service.find_route_path(1, 4, via_stations=[3])

    assert result.track_ids == (10, 11, 12)
    assert result.has_backtracking is False


@pytest.mark.asyncio
async def test_journey_via_every_station(route_service):
    result = await route_service.find_route_path(1, 4, via_stations=[2, 3])

    assert result.track_ids == (10, 11, 12)


@pytest.mark.asyncio
async def test_unknown_start_station(route_service):
    result = await route_service.find_route_path(99, 4)

    assert result.failure is FailureKind.NO_CANDIDATES_NEAR_ANCHOR
    assert result.error == "No routes found near starting station"


@pytest.mark.asyncio
async def test_unknown_end_station(route_service):
    with pytest.raises(NoCandidatesNearAnchorError) as excinfo:
        await route_service.find_route_path_or_raise(1, 99)
    assert excinfo.value.message == "No routes found near ending station"


@pytest.mark.asyncio
async def test_unknown_via_station(route_service):
    result = await route_service.find_route_path(1, 4, via_stations=[99])

    assert result.error == "No routes found near via station 1"


@pytest.mark.asyncio
async def test_unreachable_station(route_service):
    with pytest.raises(NoPathFoundError) as excinfo:
        await route_service.find_route_path_or_raise(1, 5)

    assert excinfo.value.message.startswith("No path found for segment 1.")
    assert "tried up to 1000km" in excinfo.value.message


@pytest.mark.asyncio
async def test_second_leg_failure_names_segment(line_routes, stations):
    service = RoutePathfinderService(
        source=GeoJSONRouteSource.from_routes(line_routes, stations),
        search=SearchConfig(),
        settings=RouteSearchConfig(buffer_ladder_m=(50_000, 100_000)),
    )
    result = await service.find_route_path(1, 5, via_stations=[3])

    assert result.failure is FailureKind.NO_PATH_FOUND
    assert result.error == (
        "No path found for segment 2. The stations might be too far apart "
        "(tried up to 100km). Try adding via stations to break up the journey."
    )


@pytest.mark.asyncio
async def test_via_station_does_not_turn_back():
    # A spur R3 leaves the junction station J heading back south. Going
    # A -> J -> B must continue north on R2, never reverse onto the spur.
    stations = [
        Station(1, "A", (0.0, 0.0)),
        Station(2, "J", (0.0, 0.1)),
        Station(3, "B", (0.0, 0.2)),
    ]
    routes = [
        Route(1, "A", "J", ((0.0, 0.0), (0.0, 0.1)), 11.1),
        Route(2, "J", "B", ((0.0, 0.1), (0.0, 0.2)), 11.1),
        Route(3, "J", "S", ((0.0, 0.1), (0.002, 0.0)), 11.1),
    ]
    service = RoutePathfinderService(
        source=GeoJSONRouteSource.from_routes(routes, stations),
        search=SearchConfig(),
        settings=RouteSearchConfig(),
    )

    result = await service.find_route_path(1, 3, via_stations=[2])

    assert result.track_ids == (1, 2)
    assert result.has_backtracking is False


@pytest.mark.asyncio
async def test_to_dict_shape(route_service):
    result = await route_service.find_route_path(1, 2)
    data = result.to_dict()

    assert data["routes"][0]["track_id"] == 10
    assert data["routes"][0]["from_station"] == "Alpha"
    assert data["hasBacktracking"] is False
    assert "error" not in data
