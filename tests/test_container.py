"""Tests for the dependency injection container."""

import pytest

from railpath.adapters.spatial import (
    GeoJSONRouteSource,
    GeoJSONSegmentSource,
    PostGISRouteSource,
    PostGISSegmentSource,
)
from railpath.config import AppConfig, DataSourceConfig
from railpath.container import Container, get_container, reset_container
from railpath.domain.errors import ConfigurationError
from railpath.ports.spatial import RouteSourcePort, SegmentSourcePort
from railpath.services import RoutePathfinderService, SegmentPathfinderService


class TestContainer:
    """Test suite for Container."""

    def test_unregistered_type(self):
        with pytest.raises(KeyError):
            Container(config=AppConfig()).resolve(SegmentSourcePort)

    def test_singleton_registration(self):
        container = Container(config=AppConfig())
        container.register(list, list)

        assert container.resolve(list) is container.resolve(list)

    def test_transient_registration(self):
        container = Container(config=AppConfig())
        container.register(list, list, singleton=False)

        assert container.resolve(list) is not container.resolve(list)

    def test_reregistration_drops_cached_instance(self):
        container = Container(config=AppConfig())
        container.register(list, lambda: [1])
        first = container.resolve(list)

        container.register(list, lambda: [2])

        assert container.resolve(list) == [2]
        assert first == [1]

    def test_clear_all(self):
        container = Container(config=AppConfig())
        container.register(list, list)
        container.clear_all()

        assert not container.is_registered(list)


class TestDefaultBindings:
    """Backend selection in Container.create_default."""

    def test_geojson_backend(self):
        container = Container.create_default(AppConfig())

        assert isinstance(container.resolve(SegmentSourcePort), GeoJSONSegmentSource)
        assert isinstance(container.resolve(RouteSourcePort), GeoJSONRouteSource)

    def test_postgis_backend(self):
        config = AppConfig(source=DataSourceConfig(backend="postgis"))
        container = Container.create_default(config)

        assert isinstance(container.resolve(SegmentSourcePort), PostGISSegmentSource)
        assert isinstance(container.resolve(RouteSourcePort), PostGISRouteSource)

    def test_unknown_backend(self):
        config = AppConfig()
        # model_copy skips validation, so the Literal check is bypassed
        config = config.model_copy(
            update={"source": config.source.model_copy(update={"backend": "oracle"})}
        )

        with pytest.raises(ConfigurationError) as excinfo:
            Container.create_default(config)
        assert excinfo.value.setting_name == "source.backend"

    def test_services_share_the_source(self):
        container = Container.create_default(AppConfig())
        service = container.resolve(SegmentPathfinderService)

        assert service.source is container.resolve(SegmentSourcePort)
        assert service.settings is container.config.segment
        assert isinstance(container.resolve(RoutePathfinderService), RoutePathfinderService)

    def test_source_override_reaches_service(self, straight_segments):
        container = Container.create_default(AppConfig())
        in_memory = GeoJSONSegmentSource.from_segments(straight_segments)
        container.register(SegmentSourcePort, lambda: in_memory)

        assert container.resolve(SegmentPathfinderService).source is in_memory


def test_default_container_is_shared_until_reset():
    first = get_container()
    assert get_container() is first

    reset_container()
    assert get_container() is not first
