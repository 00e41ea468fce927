import pytest

from conftest import seg
from railpath.domain.models import Route
from railpath.graph.backtracking import (
    BACKTRACK_THRESHOLD_DEG,
    find_backtracking,
    has_backtracking,
    is_backtracking_transition,
    orient_path,
    transition_angle,
)
from railpath.graph.connectivity import (
    build_route_network,
    build_segment_network,
    coordinate_key,
)

JUNCTION = coordinate_key((0, 0.02))


def test_default_threshold():
    assert BACKTRACK_THRESHOLD_DEG == 140.0


def test_stub_transition_is_flagged(stub_segments):
    network = build_segment_network(stub_segments)
    angle = transition_angle(network.info("A"), JUNCTION, network.info("B"))

    assert angle == pytest.approx(177.1, abs=0.2)
    assert is_backtracking_transition(network.info("A"), JUNCTION, network.info("B"))


def test_detection_is_symmetric(stub_segments):
    network = build_segment_network(stub_segments)

    assert has_backtracking(network, ["A", "B"])
    assert has_backtracking(network, ["B", "A"])


def test_straight_path_not_flagged():
    network = build_segment_network(
        [seg("1", (0, 0), (0, 1)), seg("2", (0, 1), (0, 2))]
    )
    assert not has_backtracking(network, ["1", "2"])
    assert not has_backtracking(network, ["2", "1"])


def test_right_angle_not_flagged(straight_segments):
    network = build_segment_network(straight_segments)
    assert not has_backtracking(network, ["S1", "S2", "S3"])


def test_reversed_storage_order_uses_adjacent_vertex():
    # Second segment is digitized against the direction of travel and
    # curls back near the junction; its far end lies north-east.
    network = build_segment_network(
        [
            seg("1", (0, 0), (0, 1)),
            seg("2", (0.5, 1.5), (0.0001, 0.99), (0, 1)),
        ]
    )
    assert has_backtracking(network, ["1", "2"])


def test_threshold_is_configurable(straight_segments):
    network = build_segment_network(straight_segments)
    assert has_backtracking(network, ["S1", "S2"], threshold_deg=45.0)


def test_find_backtracking_reports_first_junction(stub_segments):
    network = build_segment_network(stub_segments)
    junction = find_backtracking(network, ["A", "B"])

    assert junction is not None
    assert junction.index == 0
    assert junction.label == JUNCTION
    assert junction.angle_deg > BACKTRACK_THRESHOLD_DEG


def test_short_paths_never_backtrack(stub_segments):
    network = build_segment_network(stub_segments)
    assert find_backtracking(network, ["A"]) is None
    assert find_backtracking(network, []) is None


def test_orient_path_exits(straight_segments):
    network = build_segment_network(straight_segments)
    exits = orient_path(network, ["S1", "S2", "S3"])

    assert exits == [
        coordinate_key((0, 1)),
        coordinate_key((1, 1)),
        coordinate_key((1, 2)),
    ]


def test_orient_path_honours_entry():
    routes = [
        Route(1, "A", "B", ((0.0, 0.0), (0.0, 0.1)), 10.0),
        Route(2, "B", "C", ((0.0, 0.1), (0.0, 0.2)), 10.0),
    ]
    network = build_route_network(routes)

    assert orient_path(network, [2], entry="C") == ["B"]
    assert orient_path(network, [1, 2], entry="A") == ["B", "C"]


def test_route_level_stub():
    routes = [
        Route(1, "A", "B", ((0.0, 0.0), (0.0, 0.1)), 11.0),
        Route(2, "B", "C", ((0.0, 0.1), (0.001, 0.0)), 11.0),
    ]
    network = build_route_network(routes)

    assert has_backtracking(network, [1, 2])
