"""Merging of ordered polylines into one continuous, oriented polyline."""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Mapping, Sequence

from ..domain.errors import ChainBrokenError
from ..domain.models import Coordinate, NodeId, Segment
from .backtracking import orient_path
from .connectivity import COORDINATE_PRECISION, Network, coordinate_key
from .geometry import project_onto_polyline

logger = logging.getLogger(__name__)


def merge_linear_chain(
    sublists: Sequence[Sequence[Coordinate]],
    precision: int = COORDINATE_PRECISION,
) -> List[Coordinate]:
    """Merge polylines that form a linear chain into a single polyline.

    The seed is the first sublist with an endpoint no other sublist
    shares. It is oriented so that this free endpoint starts the chain,
    then the sublist touching the current tail is appended repeatedly,
    reversed when needed, without repeating the junction coordinate.

    Parameters
    ----------
    sublists:
        Polylines in any orientation. Their order only matters for
        picking the seed and for ties.
    precision:
        Decimals used to decide whether two coordinates coincide.

    Returns
    -------
    list
        Merged coordinates. Closed loops, which have no free endpoint,
        are seeded from the first sublist as a best effort.

    Raises
    ------
    ChainBrokenError
        If no remaining sublist touches the tail of the chain.
    """
    if not sublists:
        return []
    if len(sublists) == 1:
        return list(sublists[0])

    def key(coord: Coordinate) -> str:
        return coordinate_key(coord, precision)

    counts: Counter = Counter()
    for sub in sublists:
        counts[key(sub[0])] += 1
        counts[key(sub[-1])] += 1

    seed_index = None
    for i, sub in enumerate(sublists):
        if counts[key(sub[0])] == 1 or counts[key(sub[-1])] == 1:
            seed_index = i
            break

    if seed_index is None:
        logger.warning(
            "No free endpoint in chain, merging from the first polyline",
            extra={"sublists": len(sublists)},
        )
        seed_index = 0
        chain = list(sublists[0])
    else:
        seed = sublists[seed_index]
        if counts[key(seed[0])] != 1:
            chain = list(reversed(seed))
        else:
            chain = list(seed)

    remaining = [sub for i, sub in enumerate(sublists) if i != seed_index]

    while remaining:
        tail = key(chain[-1])
        for i, sub in enumerate(remaining):
            if key(sub[0]) == tail:
                chain.extend(sub[1:])
                break
            if key(sub[-1]) == tail:
                chain.extend(list(reversed(sub))[1:])
                break
        else:
            raise ChainBrokenError(
                message=(
                    f"No polyline continues the chain at {chain[-1]}, "
                    f"{len(remaining)} left unmerged"
                ),
                tail=chain[-1],
                remaining=len(remaining),
            )
        remaining.pop(i)

    return chain


def _orient(
    coordinates: Sequence[Coordinate], exit_label: str, end_label: str
) -> List[Coordinate]:
    if exit_label == end_label:
        return list(coordinates)
    return list(reversed(coordinates))


def _join_ordered(
    sublists: Sequence[Sequence[Coordinate]], precision: int
) -> List[Coordinate]:
    chain: List[Coordinate] = []
    for index, sub in enumerate(sublists):
        if not chain:
            chain = list(sub)
            continue
        tail = coordinate_key(chain[-1], precision)
        if coordinate_key(sub[0], precision) == tail:
            chain.extend(sub[1:])
        elif coordinate_key(sub[-1], precision) == tail:
            chain.extend(list(reversed(sub))[1:])
        else:
            raise ChainBrokenError(
                message=(
                    f"No polyline continues the chain at {chain[-1]}, "
                    f"{len(sublists) - index} left unmerged"
                ),
                tail=chain[-1],
                remaining=len(sublists) - index,
            )
    return chain


def merge_path_coordinates(
    network: Network,
    segments: Mapping[NodeId, Segment],
    path: Sequence[NodeId],
    precision: int = COORDINATE_PRECISION,
) -> List[Coordinate]:
    """Merge the geometries of an ordered path in traversal order.

    Unlike ``merge_linear_chain`` the first node seeds the chain, and each
    node is oriented by the end it is left through, so paths revisiting a
    junction (turning triangles, loops) are walked as found.

    Raises
    ------
    ChainBrokenError
        If consecutive nodes do not share an endpoint.
    """
    if not path:
        return []

    exits = orient_path(network, path)
    sublists = [
        _orient(segments[node].coordinates, exits[i], network.info(node).end_label)
        for i, node in enumerate(path)
    ]
    return _join_ordered(sublists, precision)


def _drop_repeated(
    coordinates: Sequence[Coordinate], precision: int
) -> List[Coordinate]:
    result: List[Coordinate] = []
    for coord in coordinates:
        if result and coordinate_key(result[-1], precision) == coordinate_key(
            coord, precision
        ):
            continue
        result.append(coord)
    return result


def _cut_single(
    coordinates: Sequence[Coordinate], start: Coordinate, end: Coordinate
) -> List[Coordinate]:
    first = project_onto_polyline(start, coordinates)
    last = project_onto_polyline(end, coordinates)
    if first is None or last is None:
        return list(coordinates)

    result: List[Coordinate] = [first.point]
    if first.segment_index < last.segment_index:
        result.extend(coordinates[first.segment_index + 1 : last.segment_index + 1])
    elif first.segment_index > last.segment_index:
        result.extend(
            coordinates[i]
            for i in range(first.segment_index, last.segment_index, -1)
        )
    result.append(last.point)
    return result


def truncate_path_coordinates(
    network: Network,
    segments: Mapping[NodeId, Segment],
    path: Sequence[NodeId],
    start: Coordinate,
    end: Coordinate,
    precision: int = COORDINATE_PRECISION,
) -> List[Coordinate]:
    """Build the merged polyline of a path, cut at two query coordinates.

    The first node is cut from the projection of ``start`` to the end it
    shares with the second node; the last node from the end it shares with
    the previous node to the projection of ``end``. Inner nodes are kept
    whole and the pieces are joined in path order. A single-node path
    is cut on both sides, walking the polyline backwards when ``end``
    projects before ``start``.
    """
    if not path:
        return []

    if len(path) == 1:
        coords = segments[path[0]].coordinates
        return _drop_repeated(_cut_single(coords, start, end), precision)

    exits = orient_path(network, path)
    last_index = len(path) - 1
    sublists: List[List[Coordinate]] = []

    for i, node in enumerate(path):
        coords = list(segments[node].coordinates)
        info = network.info(node)

        if i == 0:
            cut = project_onto_polyline(start, coords)
            if cut is None:
                sub = _orient(coords, exits[0], info.end_label)
            elif exits[0] == info.end_label:
                sub = [cut.point] + coords[cut.segment_index + 1 :]
            else:
                sub = [cut.point] + coords[cut.segment_index :: -1]
        elif i == last_index:
            cut = project_onto_polyline(end, coords)
            if cut is None:
                sub = coords
            elif exits[i - 1] == info.start_label:
                sub = coords[: cut.segment_index + 1] + [cut.point]
            else:
                sub = coords[: cut.segment_index : -1] + [cut.point]
        else:
            sub = _orient(coords, exits[i], info.end_label)

        sub = _drop_repeated(sub, precision)
        # A cut landing exactly on the junction leaves nothing of the node
        if len(sub) >= 2:
            sublists.append(sub)

    return _join_ordered(sublists, precision)
