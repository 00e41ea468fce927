"""In-memory connectivity graphs built per pathfinding call.

Two builders produce the same ``Network`` record:

- ``build_segment_network`` connects track segments whose endpoint
  coordinates coincide after quantization to ``COORDINATE_PRECISION``
  decimals.
- ``build_route_network`` connects named routes sharing a ``from`` or
  ``to`` station name, compared with exact, case-sensitive equality.

A ``Network`` is never mutated after construction and is dropped when the
call that built it returns.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..domain.models import (
    BearingInfo,
    Coordinate,
    NodeId,
    Route,
    Segment,
    parse_compound_id,
)
from .geometry import polyline_length_m

logger = logging.getLogger(__name__)

# 7 decimals of a degree is ~1 cm on the ground. Coarser keys create false
# junctions, finer keys split connected track on representation jitter.
COORDINATE_PRECISION = 7

SortKey = Tuple[int, float, float, str]


def coordinate_key(coord: Coordinate, precision: int = COORDINATE_PRECISION) -> str:
    """Fixed-precision string key used for "same point" comparisons."""
    return f"{coord[0]:.{precision}f},{coord[1]:.{precision}f}"


def node_sort_key(node_id: NodeId) -> SortKey:
    """Deterministic ordering for neighbour iteration.

    Integer ids and numeric strings sort numerically; numeric compound
    segment ids (``"<parent>-<half>"``, see ``parse_compound_id``) sort by
    parent then half; anything else sorts after them, lexicographically.
    """
    if isinstance(node_id, int):
        return (0, float(node_id), 0.0, "")

    text = str(node_id)
    compound = parse_compound_id(text)
    head, half = compound if compound is not None else (text, 0)
    try:
        parent = float(head)
    except ValueError:
        return (1, math.inf, math.inf, text)
    return (0, parent, float(half), text)


@dataclass(frozen=True)
class Network:
    """Adjacency plus cached endpoint information for one search.

    Attributes:
        infos: Endpoint and length information per node id
        adjacency: Sorted neighbour ids per node id
    """

    infos: Mapping[NodeId, BearingInfo]
    adjacency: Mapping[NodeId, Tuple[NodeId, ...]] = field(default_factory=dict)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.infos

    def __len__(self) -> int:
        return len(self.infos)

    def neighbors(self, node_id: NodeId) -> Tuple[NodeId, ...]:
        return self.adjacency.get(node_id, ())

    def info(self, node_id: NodeId) -> BearingInfo:
        return self.infos[node_id]

    def length_m(self, node_id: NodeId) -> float:
        return self.infos[node_id].length_m

    def path_length_m(self, path: Sequence[NodeId]) -> float:
        return sum(self.infos[node].length_m for node in path if node in self.infos)

    def exit_after_entering(self, node_id: NodeId, at_label: str) -> Optional[str]:
        """Exit label when entering ``node_id`` at ``at_label``, if legal."""
        info = self.infos.get(node_id)
        if info is None:
            return None
        return info.other_label(at_label)

    def initial_exits(
        self, node_id: NodeId, entry: Optional[str] = None
    ) -> Tuple[str, ...]:
        """Legal exit labels for a start node.

        Without an entry constraint both ends are possible. With one, the
        node must touch ``entry`` and the only exit is its far side.
        """
        info = self.infos.get(node_id)
        if info is None:
            return ()
        if entry is None:
            if info.start_label == info.end_label:
                return (info.start_label,)
            return (info.start_label, info.end_label)
        exit_label = info.other_label(entry)
        return (exit_label,) if exit_label is not None else ()

    def connection_label(self, a: NodeId, b: NodeId) -> Optional[str]:
        """Shared end label of two nodes, preferring ``a``'s end side.

        The preference order mirrors how route data is usually digitized:
        ``a.end == b.start`` first, then ``a.end == b.end``, then the two
        combinations at ``a``'s start.
        """
        ia = self.infos.get(a)
        ib = self.infos.get(b)
        if ia is None or ib is None:
            return None
        if ia.end_label in (ib.start_label, ib.end_label):
            return ia.end_label
        if ia.start_label in (ib.start_label, ib.end_label):
            return ia.start_label
        return None


def _sorted_adjacency(links: Mapping[NodeId, Set[NodeId]]) -> Dict[NodeId, Tuple[NodeId, ...]]:
    return {
        node: tuple(sorted(neighbors, key=node_sort_key))
        for node, neighbors in links.items()
    }


def segment_bearing_info(
    segment: Segment, precision: int = COORDINATE_PRECISION
) -> BearingInfo:
    coords = segment.coordinates
    return BearingInfo(
        node_id=segment.id,
        start_label=coordinate_key(coords[0], precision),
        end_label=coordinate_key(coords[-1], precision),
        start=coords[0],
        near_start=coords[1],
        near_end=coords[-2],
        end=coords[-1],
        length_m=polyline_length_m(coords),
    )


def route_bearing_info(route: Route) -> BearingInfo:
    coords = route.coordinates
    return BearingInfo(
        node_id=route.track_id,
        start_label=route.from_station,
        end_label=route.to_station,
        start=coords[0],
        near_start=coords[1],
        near_end=coords[-2],
        end=coords[-1],
        length_m=route.length_km * 1000.0,
    )


def build_segment_network(
    segments: Iterable[Segment], precision: int = COORDINATE_PRECISION
) -> Network:
    """Connect segments that share a quantized endpoint.

    Parameters
    ----------
    segments:
        Candidate segments, typically the raw result of a buffered
        spatial query. Repeated ids keep their first occurrence.
    precision:
        Number of decimals used to quantize endpoint coordinates.

    Returns
    -------
    Network
        Adjacency with sorted neighbour tuples.
    """
    infos: Dict[NodeId, BearingInfo] = {}
    by_key: Dict[str, List[NodeId]] = {}

    for segment in segments:
        if segment.id in infos:
            continue
        info = segment_bearing_info(segment, precision)
        infos[segment.id] = info

        by_key.setdefault(info.start_label, []).append(segment.id)
        # Closed loops register once
        if info.end_label != info.start_label:
            by_key.setdefault(info.end_label, []).append(segment.id)

    links: Dict[NodeId, Set[NodeId]] = {node: set() for node in infos}
    for members in by_key.values():
        for node in members:
            links[node].update(other for other in members if other != node)

    network = Network(infos=infos, adjacency=_sorted_adjacency(links))
    logger.debug(
        "Segment network built",
        extra={"nodes": len(infos), "junctions": len(by_key)},
    )
    return network


def build_route_network(routes: Iterable[Route]) -> Network:
    """Connect routes sharing a station name in any from/to combination.

    Pairwise comparison is quadratic in the number of candidates, which
    the buffered spatial query keeps small. Station names are compared
    exactly: near-duplicates (accents, whitespace) do not connect.
    """
    infos: Dict[NodeId, BearingInfo] = {}
    for route in routes:
        if route.track_id not in infos:
            infos[route.track_id] = route_bearing_info(route)

    nodes = list(infos.values())
    links: Dict[NodeId, Set[NodeId]] = {info.node_id: set() for info in nodes}

    for i in range(len(nodes)):
        r1 = nodes[i]
        for j in range(i + 1, len(nodes)):
            r2 = nodes[j]
            if (
                r1.start_label == r2.start_label
                or r1.start_label == r2.end_label
                or r1.end_label == r2.start_label
                or r1.end_label == r2.end_label
            ):
                links[r1.node_id].add(r2.node_id)
                links[r2.node_id].add(r1.node_id)

    network = Network(infos=infos, adjacency=_sorted_adjacency(links))
    logger.debug("Route network built", extra={"nodes": len(infos)})
    return network
