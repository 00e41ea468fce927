"""Dependency injection container.

This module provides a simple DI container without external frameworks.
It binds the spatial source ports to the configured backend and builds
the pathfinding services on top of them.

Design principles:
1. No magic - explicit registration and resolution
2. Testable - easy to swap in in-memory sources
3. Lazy loading - adapters instantiated on first use
4. Thread-safe - for web server contexts
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .config import AppConfig, get_config
from .domain.errors import ConfigurationError


@dataclass
class Container:
    """Dependency injection container.

    Usage:
        # Production
        container = Container.create_default()
        service = container.resolve(SegmentPathfinderService)

        # Testing
        container = Container()
        container.register(SegmentSourcePort, lambda: GeoJSONSegmentSource.from_segments(...))
        source = container.resolve(SegmentSourcePort)

    Attributes:
        config: Application configuration
    """

    config: AppConfig = field(default_factory=get_config)

    _factories: Dict[type[Any], Callable[[], Any]] = field(
        default_factory=dict, repr=False
    )
    _singletons: Dict[type[Any], Any] = field(default_factory=dict, repr=False)
    _singleton_types: set[type[Any]] = field(default_factory=set, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def register(
        self,
        port_type: type[Any],
        factory: Callable[[], Any],
        singleton: bool = True,
    ) -> None:
        """Register a factory for a port type.

        Args:
            port_type: The type (usually a Protocol) to register.
            factory: A callable that creates instances of the type.
            singleton: If True, only one instance is created.
        """
        with self._lock:
            self._factories[port_type] = factory
            if singleton:
                self._singleton_types.add(port_type)
            else:
                self._singleton_types.discard(port_type)
            self._singletons.pop(port_type, None)

    def resolve(self, port_type: type[Any]) -> Any:
        """Resolve an instance of a port type.

        Raises:
            KeyError: If the type is not registered.
        """
        with self._lock:
            if port_type not in self._factories:
                raise KeyError(f"Type not registered: {port_type}")

            if port_type in self._singleton_types:
                if port_type not in self._singletons:
                    self._singletons[port_type] = self._factories[port_type]()
                return self._singletons[port_type]

            return self._factories[port_type]()

    def is_registered(self, port_type: type[Any]) -> bool:
        return port_type in self._factories

    def clear_singletons(self) -> None:
        """Clear all cached singletons.

        Call this in tests to ensure fresh instances.
        """
        with self._lock:
            self._singletons.clear()

    def clear_all(self) -> None:
        """Clear all registrations and singletons."""
        with self._lock:
            self._factories.clear()
            self._singletons.clear()
            self._singleton_types.clear()

    @classmethod
    def create_default(cls, config: Optional[AppConfig] = None) -> Container:
        """Create a container with default production bindings.

        The spatial ports are bound to the backend named by
        ``config.source.backend``; both pathfinding services resolve
        their source from the container.

        Args:
            config: Optional configuration override.

        Returns:
            A configured Container instance.

        Raises:
            ConfigurationError: If the configured backend is unknown.
        """
        from .ports.spatial import RouteSourcePort, SegmentSourcePort
        from .services import RoutePathfinderService, SegmentPathfinderService

        config = config or get_config()
        container = cls(config=config)

        backend = config.source.backend
        if backend == "geojson":
            from .adapters.spatial import GeoJSONRouteSource, GeoJSONSegmentSource

            container.register(
                SegmentSourcePort, lambda: GeoJSONSegmentSource(config.source)
            )
            container.register(
                RouteSourcePort, lambda: GeoJSONRouteSource(config.source)
            )
        elif backend == "postgis":
            from .adapters.spatial import PostGISRouteSource, PostGISSegmentSource

            container.register(
                SegmentSourcePort, lambda: PostGISSegmentSource(config.source)
            )
            container.register(
                RouteSourcePort, lambda: PostGISRouteSource(config.source)
            )
        else:
            raise ConfigurationError(
                f"Unknown spatial backend: {backend!r}",
                setting_name="source.backend",
                expected_type="'geojson' or 'postgis'",
            )

        container.register(
            SegmentPathfinderService,
            lambda: SegmentPathfinderService(
                source=container.resolve(SegmentSourcePort),
                search=config.search,
                settings=config.segment,
            ),
        )
        container.register(
            RoutePathfinderService,
            lambda: RoutePathfinderService(
                source=container.resolve(RouteSourcePort),
                search=config.search,
                settings=config.route,
            ),
        )

        return container


# Global default container (lazy initialized)
_default_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get the default application container.

    Returns:
        The default Container instance (creates one if needed).
    """
    global _default_container
    if _default_container is None:
        with _container_lock:
            if _default_container is None:
                _default_container = Container.create_default()
    return _default_container


def reset_container() -> None:
    """Reset the default container.

    Call this in tests to ensure a fresh container.
    """
    global _default_container
    with _container_lock:
        if _default_container is not None:
            _default_container.clear_all()
        _default_container = None
