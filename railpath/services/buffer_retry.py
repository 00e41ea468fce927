"""Progressive widening of the spatial query area."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from ..domain.errors import ChainBrokenError, ConfigurationError, PathfindingError

T = TypeVar("T")

Attempt = Callable[[float], Awaitable[Optional[T]]]


@dataclass
class BufferRetryStrategy(Generic[T]):
    """Run a search at increasing buffer sizes until one succeeds.

    A search only sees the subgraph its spatial query loaded, so a miss
    at one buffer size says nothing about the next. Each attempt either
    returns a result, returns None, or raises a PathfindingError naming
    why nothing was found at that size.

    Attributes:
        ladder_m: Buffer sizes in meters, smallest first
        name: Label used in log records
    """

    ladder_m: Sequence[float]
    name: str = "search"
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if not self.ladder_m:
            raise ConfigurationError(
                "Buffer ladder must contain at least one size",
                setting_name="buffer_ladder_m",
                expected_type="non-empty sequence of meters",
            )

    @property
    def max_buffer_m(self) -> float:
        return self.ladder_m[-1]

    async def run(self, attempt: Attempt) -> Optional[T]:
        """Call ``attempt(buffer_m)`` for each ladder size in order.

        Returns:
            The first non-None result, or None once the ladder is exhausted.

        Raises:
            PathfindingError: The error raised at the largest buffer size,
                if the last attempt raised one.
            ChainBrokenError: Immediately; a larger area cannot repair
                inconsistent geometry.
        """
        last_error: Optional[PathfindingError] = None

        for buffer_m in self.ladder_m:
            self._logger.debug(
                "Attempting search",
                extra={"search": self.name, "buffer_km": buffer_m / 1000.0},
            )
            try:
                result = await attempt(buffer_m)
            except ChainBrokenError:
                raise
            except PathfindingError as e:
                self._logger.debug(
                    "Nothing found at buffer size",
                    extra={
                        "search": self.name,
                        "buffer_km": buffer_m / 1000.0,
                        "reason": e.message,
                    },
                )
                last_error = e
                continue

            if result is not None:
                self._logger.info(
                    "Search succeeded",
                    extra={"search": self.name, "buffer_km": buffer_m / 1000.0},
                )
                return result
            last_error = None

        self._logger.info(
            "Buffer ladder exhausted",
            extra={"search": self.name, "max_buffer_km": self.max_buffer_m / 1000.0},
        )
        if last_error is not None:
            raise last_error
        return None
