"""Bearing-based detection of sharp reversals at junctions.

A transition from node A to node B through their shared end P compares
the direction of travel arriving at P along A with the direction of
travel leaving P along B. Both use the vertex adjacent to P, never the
far end of the polyline, so the test stays correct when a node is
traversed against its stored coordinate order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..domain.models import BearingInfo, NodeId
from .connectivity import Network
from .geometry import bearing, bearing_difference

logger = logging.getLogger(__name__)

# Empirical: no real train reverses by more than this at a junction.
# Tunable heuristic, kept at the value the route data was curated with.
BACKTRACK_THRESHOLD_DEG = 140.0


@dataclass(frozen=True, slots=True)
class BacktrackingJunction:
    """First junction of a path classified as backtracking.

    Attributes:
        index: Position ``i`` of the transition ``path[i] -> path[i + 1]``
        label: Label of the connection point
        angle_deg: Bearing difference at the junction
    """

    index: int
    label: str
    angle_deg: float


def exit_bearing(info: BearingInfo, label: str) -> float:
    """Bearing of travel arriving at the end named ``label``."""
    if label == info.end_label:
        return bearing(info.near_end, info.end)
    return bearing(info.near_start, info.start)


def entry_bearing(info: BearingInfo, label: str) -> float:
    """Bearing of travel departing from the end named ``label``."""
    if label == info.start_label:
        return bearing(info.start, info.near_start)
    return bearing(info.end, info.near_end)


def transition_angle(prev: BearingInfo, label: str, nxt: BearingInfo) -> float:
    return bearing_difference(exit_bearing(prev, label), entry_bearing(nxt, label))


def is_backtracking_transition(
    prev: BearingInfo,
    label: str,
    nxt: BearingInfo,
    threshold_deg: float = BACKTRACK_THRESHOLD_DEG,
) -> bool:
    """Check if moving from ``prev`` to ``nxt`` at ``label`` reverses sharply."""
    return transition_angle(prev, label, nxt) > threshold_deg


def orient_path(
    network: Network,
    path: Sequence[NodeId],
    entry: Optional[str] = None,
) -> List[str]:
    """Compute the exit label of every node along a path.

    Parameters
    ----------
    network:
        Graph the path was found in.
    path:
        Ordered node ids.
    entry:
        Label the first node is entered at, if known.

    Returns
    -------
    list[str]
        ``exits[i]`` is the end through which ``path[i]`` is left. For
        ``i < len(path) - 1`` it is the connection point with
        ``path[i + 1]``.
    """
    exits: List[str] = []

    for i, node in enumerate(path):
        info = network.info(node)
        at = exits[i - 1] if i > 0 else entry

        exit_label: Optional[str] = None
        if at is not None and info.has_label(at):
            exit_label = info.other_label(at)
            # Entering a node whose far end does not reach the next node
            # means the data disagrees with the path; fall back to geometry.
            if i + 1 < len(path) and not network.info(path[i + 1]).has_label(
                exit_label or ""
            ):
                exit_label = None

        if exit_label is None:
            if i + 1 < len(path):
                exit_label = network.connection_label(node, path[i + 1])
            if exit_label is None:
                exit_label = info.end_label

        exits.append(exit_label)

    return exits


def find_backtracking(
    network: Network,
    path: Sequence[NodeId],
    threshold_deg: float = BACKTRACK_THRESHOLD_DEG,
    entry: Optional[str] = None,
) -> Optional[BacktrackingJunction]:
    """Return the first backtracking junction of ``path``, if any."""
    if len(path) < 2:
        return None

    exits = orient_path(network, path, entry)
    for i in range(len(path) - 1):
        label = exits[i]
        nxt = network.info(path[i + 1])
        if not nxt.has_label(label):
            continue
        angle = transition_angle(network.info(path[i]), label, nxt)
        if angle > threshold_deg:
            logger.debug(
                "Backtracking junction detected",
                extra={
                    "from_node": path[i],
                    "to_node": path[i + 1],
                    "angle_deg": round(angle, 1),
                },
            )
            return BacktrackingJunction(index=i, label=label, angle_deg=angle)

    return None


def has_backtracking(
    network: Network,
    path: Sequence[NodeId],
    threshold_deg: float = BACKTRACK_THRESHOLD_DEG,
    entry: Optional[str] = None,
) -> bool:
    """Check whether any junction of ``path`` reverses sharply."""
    return find_backtracking(network, path, threshold_deg, entry) is not None
