"""CLI for railpath."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional, Tuple

import click

from . import __version__
from .domain.errors import RailPathError
from .pipeline import (
    configure_logging,
    find_path,
    find_path_from_coordinates,
    find_route_path_between_stations,
)


def _emit(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2))
    if data.get("error"):
        raise SystemExit(1)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except RailPathError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """railpath: find paths through railway track and route networks."""
    configure_logging()


@cli.command()
@click.argument("start_id")
@click.argument("end_id")
def segments(start_id: str, end_id: str) -> None:
    """Stitch track segments from START_ID to END_ID."""
    result = _run(find_path(start_id, end_id))
    _emit(result.to_dict())


@cli.command()
@click.argument("start", nargs=2, type=float)
@click.argument("end", nargs=2, type=float)
@click.option("--truncate/--no-truncate", default=None,
              help="Cut the first and last segments at the query points "
                   "(default: RAILPATH_SEGMENT_TRUNCATE_EDGES, on)")
def coordinates(
    start: Tuple[float, float], end: Tuple[float, float], truncate: Optional[bool]
) -> None:
    """Stitch track between two LON LAT coordinates lying on track."""
    result = _run(find_path_from_coordinates(start, end, truncate_edges=truncate))
    _emit(result.to_dict())


@cli.command()
@click.argument("from_station", type=int)
@click.argument("to_station", type=int)
@click.option("--via", "via_stations", type=int, multiple=True,
              help="Intermediate station id, repeatable, in travel order")
def journey(from_station: int, to_station: int, via_stations: Tuple[int, ...]) -> None:
    """Plan a journey between two station ids."""
    result = _run(find_route_path_between_stations(from_station, to_station, via_stations))
    _emit(result.to_dict())
