"""Tests for registering tagged entity listeners."""

import pytest

from cask.bundle.passes import EntityListenerPass
from cask.core import (
    CapabilityError,
    InvalidConfigurationError,
    InvalidReferenceError,
    MethodCall,
    Reference,
    ServiceLocator,
)

RESOLVER = "cask.orm.em1_entity_listener_resolver"
ATTACH = "cask.orm.em1_listeners.attach_entity_listeners"


def compile_with_resolver(container, resolver_class, tag=None):
    container.register("app.resolver", resolver_class)
    container.register("app.listener", "conftest:EntityListener").add_tag("cask.orm.entity_listener", tag or {})
    container.load_from_extension(
        "cask", {"dbal": {"driver": "pdo_sqlite"}, "orm": {"entity_listener_resolver": "app.resolver"}}
    )
    container.compile()
    return container


class TestDefaultResolver:
    """Test listeners registered on the generated resolver."""

    def test_registration_calls(self, load_config):
        container = load_config("orm_entity_listeners")
        resolver = container.get_definition(RESOLVER)

        assert resolver.method_calls == [
            MethodCall("register_service", ["conftest:EntityListener", "entity_listener1"]),
            MethodCall("register", [Reference("entity_listener3")]),
            MethodCall("register_service", ["App.Listener.ExternalListener", "entity_listener4"]),
        ]
        assert resolver.public is True

    def test_lazy_listeners_use_a_locator(self, load_config):
        container = load_config("orm_entity_listeners")
        resolver = container.get_definition(RESOLVER)

        locator_reference = resolver.arguments[0]
        assert locator_reference == Reference(f"{RESOLVER}.locator")
        locator = container.get_definition(locator_reference.id)
        assert locator.cls == "cask.core.container:ServiceLocator"
        assert list(locator.arguments[0].values) == ["entity_listener1", "entity_listener4"]

    def test_attached_to_entities(self, load_config):
        container = load_config("orm_entity_listeners")

        assert container.get_definition(ATTACH).get_method_calls("add_entity_listener") == [
            MethodCall("add_entity_listener", ["App.Entity.User", "conftest:EntityListener", "pre_persist"]),
            MethodCall(
                "add_entity_listener", ["App.Entity.User", "conftest:InvokableListener", "postPersist", "__call__"]
            ),
            MethodCall(
                "add_entity_listener",
                ["App.Entity.Order", "App.Listener.ExternalListener", "preUpdate", "onUpdate"],
            ),
        ]

    def test_calls_are_grouped_by_entity(self, container):
        for service_id, entity, event in [
            ("app.first", "App.Entity.Post", "prePersist"),
            ("app.second", "App.Entity.Tag", "prePersist"),
            ("app.third", "App.Entity.Post", "postLoad"),
        ]:
            container.register(service_id, "conftest:EntityListener").add_tag(
                "cask.orm.entity_listener", {"entity": entity, "event": event, "method": "handle"}
            )
        container.load_from_extension("cask", {"dbal": {"driver": "pdo_sqlite"}, "orm": {}})
        container.compile()

        calls = container.get_definition("cask.orm.default_listeners.attach_entity_listeners").get_method_calls(
            "add_entity_listener"
        )
        assert [(call.arguments[0], call.arguments[2]) for call in calls] == [
            ("App.Entity.Post", "prePersist"),
            ("App.Entity.Post", "postLoad"),
            ("App.Entity.Tag", "prePersist"),
        ]

    def test_resolver_builds_listeners_on_demand(self, load_config):
        import conftest

        container = load_config("orm_entity_listeners")
        resolver = container.get(RESOLVER)

        assert isinstance(resolver._container, ServiceLocator)
        listener = resolver.resolve("conftest:EntityListener")
        assert isinstance(listener, conftest.EntityListener)
        assert resolver.resolve(conftest.EntityListener) is listener
        assert isinstance(resolver.resolve(conftest.InvokableListener), conftest.InvokableListener)

    def test_rerun_does_not_duplicate(self, container):
        from conftest import FIXTURES
        from cask.core import YamlFileLoader

        YamlFileLoader(container, FIXTURES).load("orm_entity_listeners.yml")
        container.add_compiler_pass(EntityListenerPass())
        container.compile()

        assert len(container.get_definition(RESOLVER).method_calls) == 3
        assert len(container.get_definition(ATTACH).get_method_calls("add_entity_listener")) == 3


class TestCustomResolver:
    """Test listeners registered on an application resolver."""

    def test_custom_resolver_keeps_arguments(self, load_config):
        container = load_config("orm_entity_listeners")
        resolver = container.get_definition("custom_entity_listener_resolver")

        assert resolver.public is True
        assert resolver.arguments == []
        assert resolver.method_calls == [
            MethodCall("register_service", ["conftest:EntityListener", "entity_listener2"])
        ]
        assert container.get_definition("entity_listener2").public is True

    def test_eager_only_resolver_registers_instances(self, container):
        compile_with_resolver(container, "conftest:EagerOnlyResolver")

        assert container.get_definition("app.resolver").method_calls == [
            MethodCall("register", [Reference("app.listener")])
        ]

    def test_lazy_listener_needs_service_resolver(self, container):
        with pytest.raises(CapabilityError) as exc_info:
            compile_with_resolver(container, "conftest:EagerOnlyResolver", {"lazy": True})

        assert "EntityListenerServiceResolver" in str(exc_info.value)
        assert exc_info.value.capability == "EntityListenerServiceResolver"

    def test_resolver_needs_base_capability(self, container):
        with pytest.raises(CapabilityError) as exc_info:
            compile_with_resolver(container, "conftest:LazyOnlyResolver")

        assert '"EntityListenerResolver"' in str(exc_info.value)
        assert exc_info.value.service_id == "cask.orm.default_entity_listener_resolver"

    def test_unloadable_resolver_class(self, container):
        with pytest.raises(InvalidReferenceError, match="app.missing:Resolver"):
            compile_with_resolver(container, "app.missing:Resolver")


class TestValidation:
    """Test rejected listener bindings."""

    def test_abstract_listener(self, load_config):
        with pytest.raises(InvalidReferenceError) as exc_info:
            load_config("orm_entity_listener_abstract")

        assert str(exc_info.value) == 'The service "abstract_listener" must not be abstract.'

    def test_unknown_entity_manager_is_skipped(self, container):
        container.register("app.listener", "conftest:EntityListener").add_tag(
            "cask.orm.entity_listener", {"entity_manager": "missing"}
        )
        container.load_from_extension("cask", {"dbal": {"driver": "pdo_sqlite"}, "orm": {}})
        container.compile()

        assert container.get_definition("cask.orm.default_entity_listener_resolver").method_calls == []

    def test_entity_requires_event(self, container):
        container.register("app.listener", "conftest:EntityListener").add_tag(
            "cask.orm.entity_listener", {"entity": "App.Entity.User"}
        )
        container.load_from_extension("cask", {"dbal": {"driver": "pdo_sqlite"}, "orm": {}})

        with pytest.raises(InvalidConfigurationError, match='"event"'):
            container.compile()

    def test_without_orm_nothing_happens(self, container):
        container.register("app.listener", "conftest:EntityListener").add_tag("cask.orm.entity_listener")
        container.load_from_extension("cask", {"dbal": {"driver": "pdo_sqlite"}})
        container.compile()

        assert not container.has("cask.orm.default_entity_listener_resolver")
