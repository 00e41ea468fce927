"""Top-level package for the railway pathfinder.

The package finds paths through railway networks at two granularities:
raw track segments connected by shared endpoint coordinates, and named
routes connected by shared station names. Paths that reverse sharply at
a junction are detected and, where a short enough detour exists,
avoided.

Entry points live in ``railpath.pipeline``; the services in
``railpath.services`` can also be built directly around any spatial
source implementing the ports in ``railpath.ports``.
"""

__version__ = "0.1.0"
