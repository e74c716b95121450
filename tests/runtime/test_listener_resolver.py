"""Tests for the entity listener resolver and its capabilities."""

import pytest

from cask.core import ServiceLocator
from cask.orm import ContainerEntityListenerResolver, ResolverCapability, resolver_capabilities
from cask.orm.listeners import class_key


class Listener:
    pass


class OtherListener:
    pass


class EagerResolver:
    def clear(self, class_name=None):
        pass

    def resolve(self, class_name):
        pass

    def register(self, listener):
        pass


class LazyResolver(EagerResolver):
    def register_service(self, class_name, service_id):
        pass


class TestCapabilities:
    """Test capability detection from resolver classes."""

    def test_default_resolver_is_lazy(self):
        assert resolver_capabilities(ContainerEntityListenerResolver) == ResolverCapability.LAZY

    def test_eager_resolver(self):
        assert resolver_capabilities(EagerResolver) == ResolverCapability.REGISTER

    def test_lazy_resolver(self):
        capabilities = resolver_capabilities(LazyResolver)

        assert capabilities & ResolverCapability.REGISTER
        assert capabilities & ResolverCapability.REGISTER_SERVICE

    def test_non_class(self):
        assert resolver_capabilities(EagerResolver()) == ResolverCapability.NONE
        assert resolver_capabilities(Listener) == ResolverCapability.NONE


class TestClassKey:
    """Test listener class normalization."""

    def test_type_and_paths_agree(self):
        assert class_key(Listener) == f"{__name__}.Listener"
        assert class_key(f"{__name__}:Listener") == class_key(Listener)
        assert class_key(f"{__name__}.Listener") == class_key(Listener)


class TestContainerEntityListenerResolver:
    """Test resolving listeners."""

    def _resolver(self, **factories):
        return ContainerEntityListenerResolver(ServiceLocator(factories))

    def test_registered_instance(self):
        resolver = self._resolver()
        listener = Listener()

        resolver.register(listener)

        assert resolver.resolve(Listener) is listener
        assert resolver.resolve(f"{__name__}:Listener") is listener

    def test_service_is_built_once(self):
        built = []

        def factory():
            built.append(Listener())
            return built[-1]

        resolver = self._resolver(listener=factory)
        resolver.register_service(f"{__name__}:Listener", "listener")

        assert built == []
        first = resolver.resolve(Listener)
        assert resolver.resolve(Listener) is first
        assert built == [first]

    def test_unregistered_class_is_instantiated(self):
        resolver = self._resolver()

        assert isinstance(resolver.resolve(OtherListener), OtherListener)

    def test_unknown_path(self):
        with pytest.raises(LookupError, match="app.Missing"):
            self._resolver().resolve("app:Missing")

    def test_clear(self):
        resolver = self._resolver()
        listener, other = Listener(), OtherListener()
        resolver.register(listener)
        resolver.register(other)

        resolver.clear(Listener)
        assert resolver.resolve(other.__class__) is other
        assert resolver.resolve(Listener) is not listener

        resolver.clear()
        assert resolver.resolve(OtherListener) is not other
