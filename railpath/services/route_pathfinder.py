"""Route pathfinder service - journeys between named stations.

Routes connect through shared station names. A journey from one station
to another, optionally through via stations, is planned one station pair
at a time; the direction of travel on the last route of a pair carries
over to the next pair so the journey does not turn around at a via
station.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import RouteSearchConfig, SearchConfig, get_config
from ..domain.errors import (
    NoCandidatesNearAnchorError,
    NoPathFoundError,
    PathfindingError,
)
from ..domain.models import NodeId, Route, RoutePathResult
from ..graph.backtracking import orient_path
from ..graph.connectivity import build_route_network
from ..graph.search import select_path
from ..ports.spatial import RouteSourcePort
from .buffer_retry import BufferRetryStrategy


@dataclass(frozen=True, slots=True)
class Leg:
    """Routes found between two consecutive stations of a journey.

    Attributes:
        routes: Ordered routes of the leg
        has_backtracking: True when a flagged path had to be kept
        entry: Station at which the last route was entered, if known
    """

    routes: Tuple[Route, ...]
    has_backtracking: bool
    entry: Optional[str]

    @property
    def last(self) -> Route:
        return self.routes[-1]


@dataclass
class RoutePathfinderService:
    """Route-level journey planning over a spatial route source.

    Attributes:
        source: Spatial route source
        search: Shared search settings (threshold, budget)
        settings: Route-level settings (buffers, station tolerances, detour cap)
    """

    source: RouteSourcePort
    search: SearchConfig = field(default_factory=lambda: get_config().search)
    settings: RouteSearchConfig = field(default_factory=lambda: get_config().route)

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    async def routes_near_station(self, station_id: int) -> List[Route]:
        """Find candidate routes for a station with growing tolerances.

        Tolerances are tried smallest first; the first non-empty answer
        wins, so a station served by nearby track never picks up routes
        kilometers away.
        """
        for tolerance_m in self.settings.station_tolerances_m:
            routes = await self.source.find_routes_near_station(station_id, tolerance_m)
            if routes:
                self._logger.debug(
                    "Routes found near station",
                    extra={
                        "station_id": station_id,
                        "tolerance_m": tolerance_m,
                        "routes": len(routes),
                    },
                )
                return list(routes)
        return []

    async def _find_leg(
        self,
        from_station: int,
        to_station: int,
        start_routes: Sequence[Route],
        end_routes: Sequence[Route],
        entry: Optional[str],
    ) -> Optional[Leg]:
        start_ids: List[NodeId] = [r.track_id for r in start_routes]
        end_ids: List[NodeId] = [r.track_id for r in end_routes]

        async def attempt(buffer_m: float) -> Optional[Leg]:
            loaded = await self.source.fetch_routes_near_stations(
                [from_station, to_station], buffer_m
            )
            by_id: Dict[int, Route] = {}
            for route in [*loaded, *start_routes, *end_routes]:
                by_id.setdefault(route.track_id, route)

            network = build_route_network(by_id.values())
            selected = select_path(
                network,
                start_ids,
                end_ids,
                distance_ratio=self.settings.alternative_distance_ratio,
                distance_slack_m=self.settings.alternative_distance_slack_m,
                entry=entry,
                threshold_deg=self.search.backtrack_threshold_deg,
                max_expansions=self.search.max_expansions,
            )
            if selected is None:
                return None

            path = list(selected.node_ids)
            exits = orient_path(network, path, entry)
            last_entry = exits[-2] if len(path) >= 2 else entry
            return Leg(
                routes=tuple(by_id[int(n)] for n in path),
                has_backtracking=selected.has_backtracking,
                entry=last_entry,
            )

        retry: BufferRetryStrategy[Leg] = BufferRetryStrategy(
            self.settings.buffer_ladder_m, name="routes"
        )
        return await retry.run(attempt)

    async def find_route_path_or_raise(
        self,
        from_station: int,
        to_station: int,
        via_stations: Sequence[int] = (),
    ) -> RoutePathResult:
        """Plan a journey between two stations, optionally via others.

        Args:
            from_station: Departure station id.
            to_station: Arrival station id.
            via_stations: Intermediate station ids, in travel order.

        Returns:
            RoutePathResult with the ordered routes and total length.

        Raises:
            NoCandidatesNearAnchorError: If a station has no route nearby.
            NoPathFoundError: If a station pair cannot be connected.
            SpatialSourceError: If the source cannot be queried.
        """
        stations = [from_station, *via_stations, to_station]
        self._logger.info(
            "Planning journey",
            extra={"from_station": from_station, "to_station": to_station, "via": len(via_stations)},
        )

        candidates = await asyncio.gather(
            *(self.routes_near_station(station_id) for station_id in stations)
        )

        if not candidates[0]:
            raise NoCandidatesNearAnchorError(
                "No routes found near starting station", anchor="start"
            )
        if not candidates[-1]:
            raise NoCandidatesNearAnchorError(
                "No routes found near ending station", anchor="end"
            )
        for i, routes in enumerate(candidates[1:-1]):
            if not routes:
                raise NoCandidatesNearAnchorError(
                    f"No routes found near via station {i + 1}", anchor=f"via {i + 1}"
                )

        journey: List[Route] = []
        flagged = False
        previous: Optional[Leg] = None

        for i in range(len(stations) - 1):
            start_routes = candidates[i]
            entry: Optional[str] = None

            # Continue on the route the previous leg ended on, same direction
            if previous is not None and any(
                r.track_id == previous.last.track_id for r in start_routes
            ):
                start_routes = [previous.last]
                entry = previous.entry

            leg = await self._find_leg(
                stations[i], stations[i + 1], start_routes, candidates[i + 1], entry
            )
            if leg is None:
                max_km = self.settings.buffer_ladder_m[-1] / 1000.0
                raise NoPathFoundError(
                    f"No path found for segment {i + 1}. The stations might be "
                    f"too far apart (tried up to {max_km:.0f}km). Try adding via "
                    f"stations to break up the journey.",
                    start=str(stations[i]),
                    end=str(stations[i + 1]),
                )

            routes = list(leg.routes)
            if journey and routes and journey[-1].track_id == routes[0].track_id:
                routes = routes[1:]
            journey.extend(routes)
            flagged = flagged or leg.has_backtracking
            previous = leg

        total_km = sum(route.length_km for route in journey)
        self._logger.info(
            "Journey planned",
            extra={"routes": len(journey), "distance_km": round(total_km, 1)},
        )
        return RoutePathResult(
            routes=tuple(journey),
            total_distance_km=total_km,
            has_backtracking=flagged,
        )

    async def find_route_path(
        self,
        from_station: int,
        to_station: int,
        via_stations: Sequence[int] = (),
    ) -> RoutePathResult:
        """Plan a journey, reporting search failures as data.

        Returns:
            RoutePathResult, with ``error`` and ``failure`` set when no
            journey could be planned.
        """
        try:
            return await self.find_route_path_or_raise(
                from_station, to_station, via_stations
            )
        except PathfindingError as e:
            self._logger.info("No journey", extra={"reason": e.message})
            return RoutePathResult.failed(e.failure, e.message)
