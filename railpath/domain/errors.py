"""Typed domain errors for the railway pathfinder.

All errors inherit from RailPathError and can optionally wrap a root
cause exception for debugging.

Two families exist:
- Expected search outcomes (NoCandidatesNearAnchorError,
  NoPathFoundError, ChainBrokenError). The services catch them at
  their boundary and return them as data on the result objects.
- Hard failures (SpatialSourceError, GeometryError, ConfigurationError).
  These propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .models import FailureKind


@dataclass
class RailPathError(Exception):
    """Base error for the pathfinder domain.

    Attributes:
        message: Human-readable error description
        cause: Optional underlying exception that caused this error
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class PathfindingError(RailPathError):
    """An expected search outcome that is reported as data."""

    @property
    def failure(self) -> FailureKind:
        raise NotImplementedError


@dataclass
class NoCandidatesNearAnchorError(PathfindingError):
    """The spatial query found nothing near a start, end or via anchor.

    Attributes:
        anchor: Description of the anchor that failed (e.g. 'start')
    """

    anchor: str = ""

    @property
    def failure(self) -> FailureKind:
        return FailureKind.NO_CANDIDATES_NEAR_ANCHOR


@dataclass
class NoPathFoundError(PathfindingError):
    """Candidates existed but no connecting sequence was found.

    Attributes:
        start: Start anchor description
        end: End anchor description
    """

    start: str = ""
    end: str = ""

    @property
    def failure(self) -> FailureKind:
        return FailureKind.NO_PATH_FOUND


@dataclass
class ChainBrokenError(PathfindingError):
    """Adjacency claimed a connection the geometries do not have.

    This is a data-integrity signal (graph-construction bug or bad
    source data), not a disconnected network.

    Attributes:
        tail: The chain tail coordinate no remaining polyline touches
        remaining: Number of polylines left unmerged
    """

    tail: Optional[tuple[float, float]] = None
    remaining: int = 0

    @property
    def failure(self) -> FailureKind:
        return FailureKind.CHAIN_BROKEN


@dataclass
class SpatialSourceError(RailPathError):
    """The spatial data source could not be queried.

    Attributes:
        source: Name of the data source adapter
    """

    source: str = ""


@dataclass
class GeometryError(RailPathError):
    """A source returned a geometry the pathfinder cannot use.

    Attributes:
        node_id: Identifier of the offending segment or route
    """

    node_id: Optional[str] = None


@dataclass
class ConfigurationError(RailPathError):
    """Invalid or missing configuration.

    Attributes:
        setting_name: Name of the problematic setting
        expected_type: Expected type or format
    """

    setting_name: str = ""
    expected_type: Optional[str] = None
