from dataclasses import dataclass, field
from typing import List

import pytest

from conftest import seg
from railpath.adapters.spatial import GeoJSONSegmentSource
from railpath.config import SearchConfig, SegmentSearchConfig
from railpath.domain.errors import NoCandidatesNearAnchorError, NoPathFoundError
from railpath.domain.models import FailureKind
from railpath.graph.geometry import polyline_length_m
from railpath.services import SegmentPathfinderService


@dataclass
class RecordingSource:
    """Wraps a segment source and records every requested buffer size."""

    inner: GeoJSONSegmentSource
    buffers: List[float] = field(default_factory=list)

    async def fetch_segments_near_segments(self, segment_ids, buffer_m):
        self.buffers.append(buffer_m)
        return await self.inner.fetch_segments_near_segments(segment_ids, buffer_m)

    async def fetch_segments_near_point(self, coordinate, buffer_m):
        self.buffers.append(buffer_m)
        return await self.inner.fetch_segments_near_point(coordinate, buffer_m)


@pytest.mark.asyncio
async def test_straight_path(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path("S1", "S3")

    assert result.is_found
    assert result.node_ids == ("S1", "S2", "S3")
    assert result.to_dict() == {
        "nodeIds": ["S1", "S2", "S3"],
        "coordinates": [[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 2.0]],
        "hasBacktracking": False,
        "totalDistance": pytest.approx(polyline_length_m(result.coordinates)),
    }


@pytest.mark.asyncio
async def test_reverse_direction(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path("S3", "S1")

    assert result.node_ids == ("S3", "S2", "S1")
    assert result.coordinates[0] == (1.0, 2.0)
    assert result.coordinates[-1] == (0.0, 0.0)


@pytest.mark.asyncio
async def test_same_segment(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path("S2", "S2")

    assert result.node_ids == ("S2",)
    assert result.coordinates == ((0.0, 1.0), (1.0, 1.0))


@pytest.mark.asyncio
async def test_unavoidable_backtracking_is_flagged(segment_service_factory, stub_segments):
    service = segment_service_factory(stub_segments)
    result = await service.find_path("A", "B")

    assert result.node_ids == ("A", "B")
    assert result.has_backtracking is True


@pytest.mark.asyncio
async def test_turning_loop_avoids_backtracking(segment_service_factory, wye_segments):
    service = segment_service_factory(wye_segments)
    result = await service.find_path("A", "B")

    assert result.node_ids == ("A", "C", "B")
    assert result.has_backtracking is False
    assert result.coordinates[0] == (0.0, 0.0)
    assert result.coordinates[-1] == (0.001, 0.0)


@pytest.mark.asyncio
async def test_turning_triangle_geometry_follows_node_order(triangle_segments):
    # The triangle detour is several times longer than the reversing link
    service = SegmentPathfinderService(
        source=GeoJSONSegmentSource.from_segments(triangle_segments),
        search=SearchConfig(),
        settings=SegmentSearchConfig(
            alternative_distance_ratio=10.0, alternative_distance_slack_m=20_000
        ),
    )
    result = await service.find_path("A", "D")

    assert result.node_ids == ("A", "B", "C", "D")
    assert result.has_backtracking is False
    assert result.coordinates[0] == (0.0, 0.0)
    assert result.coordinates[1] == (0.0, 0.01)
    assert result.coordinates[-2] == (0.0, 0.0)
    assert result.coordinates[-1] == (0.001, 0.01)


@pytest.mark.asyncio
async def test_repeated_calls_are_identical(segment_service_factory, wye_segments):
    service = segment_service_factory(wye_segments)
    assert await service.find_path("A", "B") == await service.find_path("A", "B")


@pytest.mark.asyncio
async def test_unknown_segment_reported_as_data(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path("S1", "nope")

    assert not result.is_found
    assert result.failure is FailureKind.NO_CANDIDATES_NEAR_ANCHOR
    assert result.error == "End segment nope not found"
    assert result.to_dict()["nodeIds"] == []


@pytest.mark.asyncio
async def test_unknown_segment_raises(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)

    with pytest.raises(NoCandidatesNearAnchorError) as excinfo:
        await service.find_path_or_raise("nope", "S1")
    assert excinfo.value.anchor == "start"


@pytest.mark.asyncio
async def test_disconnected_segments(segment_service_factory):
    service = segment_service_factory(
        [seg("X", (0, 0), (0, 1)), seg("Y", (5, 5), (5, 6))]
    )

    with pytest.raises(NoPathFoundError):
        await service.find_path_or_raise("X", "Y")

    result = await service.find_path("X", "Y")
    assert result.failure is FailureKind.NO_PATH_FOUND


@pytest.mark.asyncio
async def test_coordinates_widen_buffer_until_connected(straight_segments):
    source = RecordingSource(GeoJSONSegmentSource.from_segments(straight_segments))
    service = SegmentPathfinderService(
        source=source, search=SearchConfig(), settings=SegmentSearchConfig()
    )

    result = await service.find_path_from_coordinates((0.0, 0.5), (1.0, 1.5))

    assert result.node_ids == ("S1", "S2", "S3")
    # Both anchors are queried per attempt; S2 only shows up at 100 km
    assert source.buffers == [50_000, 50_000, 100_000, 100_000]


@pytest.mark.asyncio
async def test_coordinates_truncated(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path_from_coordinates((0.0, 0.5), (1.0, 1.5))

    flat = [v for c in result.coordinates for v in c]
    assert flat == pytest.approx([0.0, 0.5, 0.0, 1.0, 1.0, 1.0, 1.0, 1.5])
    assert result.total_distance_m == pytest.approx(polyline_length_m(result.coordinates))


@pytest.mark.asyncio
async def test_coordinates_without_truncation_match_id_search(
    segment_service_factory, straight_segments
):
    service = segment_service_factory(straight_segments)
    by_coordinates = await service.find_path_from_coordinates(
        (0.0, 0.5), (1.0, 1.5), truncate_edges=False
    )
    by_ids = await service.find_path("S1", "S3")

    assert by_coordinates.coordinates == by_ids.coordinates
    assert by_coordinates.node_ids == by_ids.node_ids


@pytest.mark.asyncio
async def test_coordinate_slightly_off_track_uses_coarse_tolerance(
    segment_service_factory, straight_segments
):
    service = segment_service_factory(straight_segments)
    result = await service.find_path_from_coordinates((0.0001, 0.5), (1.0, 1.5))

    assert result.node_ids == ("S1", "S2", "S3")


@pytest.mark.asyncio
async def test_coordinate_off_network(segment_service_factory, straight_segments):
    service = segment_service_factory(straight_segments)
    result = await service.find_path_from_coordinates((50.0, 50.0), (1.0, 1.5))

    assert result.failure is FailureKind.NO_CANDIDATES_NEAR_ANCHOR
    assert "start coordinate" in result.error
