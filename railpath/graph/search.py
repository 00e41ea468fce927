"""Breadth-first path searches over a connectivity ``Network``.

Both searches key their frontier on ``(node, exit label)`` rather than on
the node alone: a node can be entered through either end, and the next
node must connect at the end the traversal currently stands at. This
forbids jumping between a node's two ends without traversing it.

Neighbour tuples are pre-sorted by the network, so results only depend on
the input data.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..domain.models import NodeId
from .backtracking import (
    BACKTRACK_THRESHOLD_DEG,
    has_backtracking,
    is_backtracking_transition,
)
from .connectivity import Network

logger = logging.getLogger(__name__)

State = Tuple[NodeId, str]


@dataclass(frozen=True, slots=True)
class _Frontier:
    node: NodeId
    exit_label: str
    path: Tuple[NodeId, ...]
    distance_m: float

    @property
    def state(self) -> State:
        return (self.node, self.exit_label)


def alternative_distance_cap(
    primary_m: float, ratio: float, slack_m: float
) -> float:
    """Longest acceptable detour: ``min(primary * ratio, primary + slack)``."""
    return min(primary_m * ratio, primary_m + slack_m)


def _reconstruct(parents: Dict[State, Optional[State]], state: State) -> List[NodeId]:
    path: List[NodeId] = []
    current: Optional[State] = state
    while current is not None:
        path.append(current[0])
        current = parents[current]
    path.reverse()
    return path


def find_shortest_path(
    network: Network,
    start_nodes: Sequence[NodeId],
    end_nodes: Iterable[NodeId],
    entry: Optional[str] = None,
    max_expansions: Optional[int] = None,
) -> Optional[List[NodeId]]:
    """Find a hop-shortest path between two sets of nodes.

    Parameters
    ----------
    network:
        Graph to search.
    start_nodes:
        Candidate first nodes, tried in the given order.
    end_nodes:
        Any of these nodes terminates the search.
    entry:
        Label the path must enter its first node at. Start nodes that do
        not touch ``entry`` are skipped, the others may only be left
        through their far end.
    max_expansions:
        Upper bound on dequeued states. When exceeded the search gives up
        and returns None.

    Returns
    -------
    list or None
        Node ids from a start node to an end node (inclusive), or None if
        the loaded graph holds no such path.
    """
    end_set: Set[NodeId] = set(end_nodes)
    if not start_nodes or not end_set:
        return None

    queue: Deque[State] = deque()
    parents: Dict[State, Optional[State]] = {}

    for node in start_nodes:
        if node not in network:
            continue
        for exit_label in network.initial_exits(node, entry):
            state = (node, exit_label)
            if state not in parents:
                parents[state] = None
                queue.append(state)

    expansions = 0
    while queue:
        state = queue.popleft()
        node, exit_label = state

        if node in end_set:
            return _reconstruct(parents, state)

        expansions += 1
        if max_expansions is not None and expansions > max_expansions:
            logger.warning(
                "Shortest path search budget exhausted",
                extra={"max_expansions": max_expansions, "visited": len(parents)},
            )
            return None

        for neighbor in network.neighbors(node):
            new_exit = network.exit_after_entering(neighbor, exit_label)
            if new_exit is None:
                continue
            next_state = (neighbor, new_exit)
            if next_state not in parents:
                parents[next_state] = state
                queue.append(next_state)

    return None


def _search_avoiding_backtracking(
    network: Network,
    seeds: Sequence[_Frontier],
    end_set: Set[NodeId],
    max_distance_m: float,
    threshold_deg: float,
    max_expansions: Optional[int],
) -> Optional[List[NodeId]]:
    queue: Deque[_Frontier] = deque()
    best: Dict[State, float] = {}

    for seed in seeds:
        if seed.distance_m < best.get(seed.state, math.inf):
            best[seed.state] = seed.distance_m
        queue.append(seed)

    shortest: Optional[Tuple[NodeId, ...]] = None
    shortest_distance = math.inf
    expansions = 0

    while queue:
        current = queue.popleft()

        # A cheaper way into the same (node, exit) was found meanwhile
        if current.distance_m > best.get(current.state, math.inf):
            continue
        if current.distance_m > max_distance_m:
            continue

        if current.node in end_set:
            if current.distance_m < shortest_distance:
                shortest = current.path
                shortest_distance = current.distance_m
            continue

        expansions += 1
        if max_expansions is not None and expansions > max_expansions:
            logger.warning(
                "Alternative path search budget exhausted",
                extra={"max_expansions": max_expansions},
            )
            break

        current_info = network.info(current.node)
        for neighbor in network.neighbors(current.node):
            new_exit = network.exit_after_entering(neighbor, current.exit_label)
            if new_exit is None:
                continue
            if neighbor in current.path:
                continue

            neighbor_info = network.info(neighbor)
            if is_backtracking_transition(
                current_info, current.exit_label, neighbor_info, threshold_deg
            ):
                continue

            distance = current.distance_m + neighbor_info.length_m
            if distance > max_distance_m:
                continue

            state = (neighbor, new_exit)
            if distance < best.get(state, math.inf):
                best[state] = distance
                queue.append(
                    _Frontier(
                        node=neighbor,
                        exit_label=new_exit,
                        path=current.path + (neighbor,),
                        distance_m=distance,
                    )
                )

    return list(shortest) if shortest is not None else None


def find_alternative_path(
    network: Network,
    start_nodes: Sequence[NodeId],
    end_nodes: Iterable[NodeId],
    max_distance_m: float,
    entry: Optional[str] = None,
    threshold_deg: float = BACKTRACK_THRESHOLD_DEG,
    max_expansions: Optional[int] = None,
) -> Optional[List[NodeId]]:
    """Find the shortest path that never backtracks at a junction.

    Unlike ``find_shortest_path`` this search weighs paths by geographic
    length, keeps the best distance per ``(node, exit)`` so competing
    paths coexist until dominated, rejects backtracking transitions while
    expanding, and drops anything longer than ``max_distance_m``.

    If nothing is found, the search is repeated once per legal first hop
    out of each start node with that hop forced, and the shortest result
    of those runs is kept.

    Parameters
    ----------
    network:
        Graph to search.
    start_nodes, end_nodes:
        As for ``find_shortest_path``.
    max_distance_m:
        Distance cap in meters, node lengths included.
    entry:
        Entry label constraint for the start nodes.
    threshold_deg:
        Backtracking threshold.
    max_expansions:
        Upper bound on expanded states per run.

    Returns
    -------
    list or None
        The shortest non-backtracking path within the cap, or None.
    """
    end_set: Set[NodeId] = set(end_nodes)
    if not start_nodes or not end_set:
        return None

    seeds: List[_Frontier] = []
    for node in start_nodes:
        if node not in network:
            continue
        for exit_label in network.initial_exits(node, entry):
            seeds.append(
                _Frontier(
                    node=node,
                    exit_label=exit_label,
                    path=(node,),
                    distance_m=network.length_m(node),
                )
            )

    path = _search_avoiding_backtracking(
        network, seeds, end_set, max_distance_m, threshold_deg, max_expansions
    )
    if path is not None:
        return path

    best_path: Optional[List[NodeId]] = None
    best_distance = math.inf

    for seed in seeds:
        seed_info = network.info(seed.node)
        for neighbor in network.neighbors(seed.node):
            new_exit = network.exit_after_entering(neighbor, seed.exit_label)
            if new_exit is None or neighbor == seed.node:
                continue

            neighbor_info = network.info(neighbor)
            if is_backtracking_transition(
                seed_info, seed.exit_label, neighbor_info, threshold_deg
            ):
                continue

            forced = _Frontier(
                node=neighbor,
                exit_label=new_exit,
                path=(seed.node, neighbor),
                distance_m=seed.distance_m + neighbor_info.length_m,
            )
            candidate = _search_avoiding_backtracking(
                network,
                [forced],
                end_set,
                max_distance_m,
                threshold_deg,
                max_expansions,
            )
            if candidate is None:
                continue

            distance = network.path_length_m(candidate)
            if distance < best_distance:
                best_path = candidate
                best_distance = distance
                logger.debug(
                    "Forced first hop produced an alternative",
                    extra={"first_hop": neighbor, "distance_m": round(distance)},
                )

    return best_path


@dataclass(frozen=True, slots=True)
class SelectedPath:
    """Outcome of a primary search plus optional backtracking avoidance.

    Attributes:
        node_ids: Chosen node sequence
        has_backtracking: True when a flagged primary path was kept
        distance_m: Sum of node lengths along ``node_ids``
    """

    node_ids: Tuple[NodeId, ...]
    has_backtracking: bool
    distance_m: float


def select_path(
    network: Network,
    start_nodes: Sequence[NodeId],
    end_nodes: Sequence[NodeId],
    distance_ratio: float,
    distance_slack_m: float,
    entry: Optional[str] = None,
    threshold_deg: float = BACKTRACK_THRESHOLD_DEG,
    max_expansions: Optional[int] = None,
) -> Optional[SelectedPath]:
    """Find a path, replacing it with a detour if it backtracks.

    The hop-shortest path is kept unless it backtracks. In that case an
    alternative is searched within ``min(primary * ratio, primary + slack)``
    and replaces the primary only if it stays within that cap; otherwise
    the primary is returned with ``has_backtracking`` set.
    """
    primary = find_shortest_path(
        network, start_nodes, end_nodes, entry=entry, max_expansions=max_expansions
    )
    if primary is None:
        return None

    primary_m = network.path_length_m(primary)
    if not has_backtracking(network, primary, threshold_deg, entry):
        return SelectedPath(tuple(primary), False, primary_m)

    cap = alternative_distance_cap(primary_m, distance_ratio, distance_slack_m)
    alternative = find_alternative_path(
        network,
        start_nodes,
        end_nodes,
        cap,
        entry=entry,
        threshold_deg=threshold_deg,
        max_expansions=max_expansions,
    )
    if alternative is not None:
        alternative_m = network.path_length_m(alternative)
        if alternative_m <= cap:
            logger.debug(
                "Backtracking avoided",
                extra={
                    "primary_m": round(primary_m),
                    "alternative_m": round(alternative_m),
                },
            )
            return SelectedPath(
                tuple(alternative),
                has_backtracking(network, alternative, threshold_deg, entry),
                alternative_m,
            )

    logger.warning(
        "Backtracking could not be avoided within the detour cap",
        extra={"primary_m": round(primary_m), "cap_m": round(cap)},
    )
    return SelectedPath(tuple(primary), True, primary_m)
