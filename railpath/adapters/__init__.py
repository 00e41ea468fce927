"""Adapters layer - Concrete implementations of ports.

This module contains implementations of the port interfaces,
connecting the pathfinder to spatial data sources:
- GeoJSON files indexed in memory (shapely STRtree)
- PostGIS databases (psycopg2 connection pool)
"""
