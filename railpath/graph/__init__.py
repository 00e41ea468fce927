"""Graph utilities for representing and searching the railway network.

This subpackage builds per-call connectivity graphs from loaded segments
or routes, searches them, detects backtracking junctions and merges the
resulting geometries into one polyline. Every function here is pure and
synchronous; data loading lives in the adapters.
"""
