"""Spatial adapters - Implementations of the spatial source ports.

Available implementations:
- GeoJSONSegmentSource / GeoJSONRouteSource: GeoJSON files or in-memory records
- PostGISSegmentSource / PostGISRouteSource: PostGIS tables
"""

from .geojson_source import GeoJSONRouteSource, GeoJSONSegmentSource
from .postgis_source import PostGISRouteSource, PostGISSegmentSource

__all__ = [
    "GeoJSONSegmentSource",
    "GeoJSONRouteSource",
    "PostGISSegmentSource",
    "PostGISRouteSource",
]
