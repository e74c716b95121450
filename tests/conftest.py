"""Shared test fixtures and utilities."""

from pathlib import Path

import pytest

from cask.bundle import BundleMetadata, OrmBundle
from cask.core import ContainerBuilder, YamlFileLoader

FIXTURES = Path(__file__).parent / "fixtures" / "config"


@pytest.fixture
def kernel_parameters(tmp_path):
    """Kernel context the bundle expects on every container."""
    return {
        "kernel.debug": False,
        "kernel.bundles": {},
        "kernel.cache_dir": str(tmp_path / "cache"),
    }


@pytest.fixture
def container(kernel_parameters):
    """Create a container with the bundle and framework cache pools registered."""
    container = ContainerBuilder(dict(kernel_parameters))
    container.register("cache.system", "cache.adapter.ArrayAdapter")
    container.register("cache.app", "cache.adapter.ArrayAdapter")
    OrmBundle().build(container)
    return container


@pytest.fixture
def load_config(container):
    """Load fixture files into the container and compile it."""

    def load(*names):
        loader = YamlFileLoader(container, FIXTURES)
        for name in names:
            loader.load(f"{name}.yml")
        container.compile()
        return container

    return load


@pytest.fixture
def bundles(tmp_path, container):
    """Three enabled bundles: annotations, XML mapping files and YAML mapping files."""
    root = tmp_path / "bundles"

    annotations = root / "AnnotationsBundle"
    (annotations / "Entity").mkdir(parents=True)

    xml = root / "XmlBundle"
    (xml / "Resources" / "config" / "doctrine").mkdir(parents=True)
    (xml / "Resources" / "config" / "doctrine" / "Product.orm.xml").write_text("<mapping/>")

    yml = root / "YamlBundle"
    (yml / "Resources" / "config" / "doctrine").mkdir(parents=True)
    (yml / "Resources" / "config" / "doctrine" / "Order.orm.yml").write_text("Order: {}")

    metadata = {
        "AnnotationsBundle": BundleMetadata(str(annotations), "Fixtures.AnnotationsBundle"),
        "XmlBundle": BundleMetadata(str(xml), "Fixtures.XmlBundle"),
        "YamlBundle": BundleMetadata(str(yml), "Fixtures.YamlBundle"),
    }
    container.set_parameter("kernel.bundles", metadata)
    return metadata


# Test classes referenced from fixtures as "conftest:<name>"
class DummySchemaAssetsFilter:
    """Rejects one table name."""

    def __init__(self, table):
        self.table = table

    def __call__(self, asset):
        name = asset if isinstance(asset, str) else asset.name
        return name != self.table


class EntityListener:
    """Listener with one method per handled event."""

    def __init__(self):
        self.calls = []

    def pre_persist(self, entity):
        self.calls.append(("pre_persist", entity))


class InvokableListener:
    """Listener handling every event through __call__."""

    def __call__(self, entity):
        return entity


class CustomResolver:
    """Resolver supporting both eager and lazy registration."""

    def __init__(self):
        self.services = {}
        self.listeners = []

    def clear(self, class_name=None):
        self.listeners = []

    def resolve(self, class_name):
        return self.services.get(class_name)

    def register(self, listener):
        self.listeners.append(listener)

    def register_service(self, class_name, service_id):
        self.services[class_name] = service_id


class EagerOnlyResolver:
    """Resolver without lazy registration."""

    def clear(self, class_name=None):
        pass

    def resolve(self, class_name):
        return None

    def register(self, listener):
        pass


class LazyOnlyResolver:
    """Resolver exposing lazy registration but not the base resolver API."""

    def register_service(self, class_name, service_id):
        pass
