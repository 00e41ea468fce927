"""Segment pathfinder service - stitches raw track segments into a route.

Given two segment ids, or two coordinates lying on track, the service
loads the segments around them, finds a connecting sequence, avoids
sharp reversals where possible and merges the geometries into one
polyline.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ..config import SearchConfig, SegmentSearchConfig, get_config
from ..domain.errors import (
    ChainBrokenError,
    NoCandidatesNearAnchorError,
    NoPathFoundError,
    PathfindingError,
)
from ..domain.models import Coordinate, PathResult, Segment
from ..graph.chain import merge_path_coordinates, truncate_path_coordinates
from ..graph.connectivity import Network, build_segment_network
from ..graph.geometry import find_nodes_containing, polyline_length_m
from ..graph.search import SelectedPath, select_path
from ..ports.spatial import SegmentSourcePort
from .buffer_retry import BufferRetryStrategy


def _unique_by_id(segments: Iterable[Segment]) -> Dict[str, Segment]:
    by_id: Dict[str, Segment] = {}
    for segment in segments:
        by_id.setdefault(segment.id, segment)
    return by_id


@dataclass
class SegmentPathfinderService:
    """Segment-level pathfinding over a spatial segment source.

    Every call builds its own graph from a fresh spatial query and drops
    it on return; the service itself holds no per-call state.

    Attributes:
        source: Spatial segment source
        search: Shared search settings (threshold, precision, budget)
        settings: Segment-level settings (buffers, tolerances, detour cap)
    """

    source: SegmentSourcePort
    search: SearchConfig = field(default_factory=lambda: get_config().search)
    settings: SegmentSearchConfig = field(
        default_factory=lambda: get_config().segment
    )

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def _select(
        self, network: Network, start_ids: Sequence[str], end_ids: Sequence[str]
    ) -> Optional[SelectedPath]:
        return select_path(
            network,
            start_ids,
            end_ids,
            distance_ratio=self.settings.alternative_distance_ratio,
            distance_slack_m=self.settings.alternative_distance_slack_m,
            threshold_deg=self.search.backtrack_threshold_deg,
            max_expansions=self.search.max_expansions,
        )

    def _build_result(
        self, selected: SelectedPath, coordinates: List[Coordinate]
    ) -> PathResult:
        return PathResult(
            node_ids=tuple(str(n) for n in selected.node_ids),
            coordinates=tuple(coordinates),
            total_distance_m=polyline_length_m(coordinates),
            has_backtracking=selected.has_backtracking,
        )

    def _solve_ids(
        self, segments: Sequence[Segment], start_id: str, end_id: str
    ) -> Optional[PathResult]:
        by_id = _unique_by_id(segments)
        if start_id not in by_id:
            raise NoCandidatesNearAnchorError(
                f"Start segment {start_id} not found", anchor="start"
            )
        if end_id not in by_id:
            raise NoCandidatesNearAnchorError(
                f"End segment {end_id} not found", anchor="end"
            )

        network = build_segment_network(by_id.values(), self.search.coordinate_precision)
        selected = self._select(network, [start_id], [end_id])
        if selected is None:
            return None

        coordinates = merge_path_coordinates(
            network, by_id, selected.node_ids, self.search.coordinate_precision
        )
        return self._build_result(selected, coordinates)

    async def find_path_or_raise(self, start_id: str, end_id: str) -> PathResult:
        """Find a path between two segments.

        Args:
            start_id: Identifier of the first segment.
            end_id: Identifier of the last segment.

        Returns:
            PathResult with node ids and the merged polyline.

        Raises:
            NoCandidatesNearAnchorError: If either segment is unknown.
            NoPathFoundError: If no connection exists up to the largest buffer.
            ChainBrokenError: If the found segments do not chain geometrically.
            SpatialSourceError: If the source cannot be queried.
        """
        start_id, end_id = str(start_id), str(end_id)
        self._logger.info(
            "Finding segment path",
            extra={"start_id": start_id, "end_id": end_id},
        )

        async def attempt(buffer_m: float) -> Optional[PathResult]:
            segments = await self.source.fetch_segments_near_segments(
                [start_id, end_id], buffer_m
            )
            return self._solve_ids(segments, start_id, end_id)

        retry: BufferRetryStrategy[PathResult] = BufferRetryStrategy(
            self.settings.buffer_ladder_m, name="segments"
        )
        result = await retry.run(attempt)
        if result is None:
            raise NoPathFoundError(
                f"No path found between segments {start_id} and {end_id}",
                start=start_id,
                end=end_id,
            )

        self._logger.info(
            "Segment path found",
            extra={"segments": result.num_nodes, "distance_m": round(result.total_distance_m)},
        )
        return result

    def _segments_at(
        self, segments: Sequence[Segment], coordinate: Coordinate
    ) -> List[str]:
        matching = find_nodes_containing(
            segments, coordinate, self.settings.exact_match_tolerance_m
        )
        coarse = self.settings.coarse_match_tolerance_m
        if not matching and coarse is not None:
            matching = find_nodes_containing(segments, coordinate, coarse)
            if matching:
                self._logger.debug(
                    "Coordinate matched with coarse tolerance",
                    extra={"coordinate": coordinate, "tolerance_m": coarse},
                )
        return matching

    def _solve_coordinates(
        self,
        segments: Sequence[Segment],
        start: Coordinate,
        end: Coordinate,
        truncate_edges: bool,
    ) -> Optional[PathResult]:
        by_id = _unique_by_id(segments)
        candidates = list(by_id.values())

        start_ids = self._segments_at(candidates, start)
        if not start_ids:
            raise NoCandidatesNearAnchorError(
                f"No railway segment passes through start coordinate {start}",
                anchor="start",
            )
        end_ids = self._segments_at(candidates, end)
        if not end_ids:
            raise NoCandidatesNearAnchorError(
                f"No railway segment passes through end coordinate {end}",
                anchor="end",
            )

        precision = self.search.coordinate_precision
        network = build_segment_network(candidates, precision)

        best: Optional[PathResult] = None
        best_distance = math.inf

        for start_id in start_ids:
            for end_id in end_ids:
                selected = self._select(network, [start_id], [end_id])
                if selected is None:
                    continue

                if truncate_edges:
                    coordinates = truncate_path_coordinates(
                        network, by_id, selected.node_ids, start, end, precision
                    )
                else:
                    coordinates = merge_path_coordinates(
                        network, by_id, selected.node_ids, precision
                    )

                result = self._build_result(selected, coordinates)
                if result.total_distance_m < best_distance:
                    best = result
                    best_distance = result.total_distance_m

        return best

    async def find_path_from_coordinates_or_raise(
        self,
        start: Coordinate,
        end: Coordinate,
        truncate_edges: Optional[bool] = None,
    ) -> PathResult:
        """Find a path between two coordinates lying on track.

        Every combination of a segment passing through ``start`` and one
        passing through ``end`` is searched; the geographically shortest
        merged polyline wins.

        Args:
            start: ``(longitude, latitude)`` of the start point.
            end: ``(longitude, latitude)`` of the end point.
            truncate_edges: Cut the first and last segments at the query
                points. When False whole segments are kept, which makes
                the result identical to the id-based search. Defaults to
                the configured value.

        Returns:
            PathResult for the shortest candidate.

        Raises:
            NoCandidatesNearAnchorError: If no segment passes through an anchor.
            NoPathFoundError: If no candidate pair connects.
            ChainBrokenError: If the found segments do not chain geometrically.
            SpatialSourceError: If the source cannot be queried.
        """
        truncate = (
            self.settings.truncate_edges if truncate_edges is None else truncate_edges
        )
        self._logger.info(
            "Finding coordinate path",
            extra={"start": start, "end": end, "truncate_edges": truncate},
        )

        async def attempt(buffer_m: float) -> Optional[PathResult]:
            near_start, near_end = await asyncio.gather(
                self.source.fetch_segments_near_point(start, buffer_m),
                self.source.fetch_segments_near_point(end, buffer_m),
            )
            return self._solve_coordinates(
                list(near_start) + list(near_end), start, end, truncate
            )

        retry: BufferRetryStrategy[PathResult] = BufferRetryStrategy(
            self.settings.buffer_ladder_m, name="coordinates"
        )
        result = await retry.run(attempt)
        if result is None:
            raise NoPathFoundError(
                f"No path found between coordinates {start} and {end}",
                start=str(start),
                end=str(end),
            )
        return result

    def _as_failure(self, error: PathfindingError) -> PathResult:
        if isinstance(error, ChainBrokenError):
            self._logger.error(
                "Segment geometries do not chain",
                extra={"tail": error.tail, "remaining": error.remaining},
            )
        else:
            self._logger.info("No segment path", extra={"reason": error.message})
        return PathResult.failed(error.failure, error.message)

    async def find_path(self, start_id: str, end_id: str) -> PathResult:
        """Find a path between two segments, reporting failures as data.

        Search failures come back as a PathResult with ``error`` and
        ``failure`` set. Source and geometry errors still raise.
        """
        try:
            return await self.find_path_or_raise(start_id, end_id)
        except PathfindingError as e:
            return self._as_failure(e)

    async def find_path_from_coordinates(
        self,
        start: Coordinate,
        end: Coordinate,
        truncate_edges: Optional[bool] = None,
    ) -> PathResult:
        """Coordinate search reporting failures as data."""
        try:
            return await self.find_path_from_coordinates_or_raise(
                start, end, truncate_edges
            )
        except PathfindingError as e:
            return self._as_failure(e)
