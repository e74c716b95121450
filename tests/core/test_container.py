"""Tests for the ContainerBuilder and its structural passes."""

import pytest

from cask.core import (
    SERVICE_CONTAINER,
    Alias,
    ChildDefinition,
    CircularReferenceError,
    CompilerPass,
    ContainerBuilder,
    Definition,
    Extension,
    FrozenContainerError,
    InvalidBehavior,
    InvalidConfigurationError,
    InvalidReferenceError,
    ParameterNotFoundError,
    Reference,
    ServiceLocator,
    ServiceLocatorArgument,
    ServiceNotFoundError,
    load_class,
)


class Greeter:
    def __init__(self, greeting, name=None):
        self.greeting = greeting
        self.name = name
        self.punctuation = ""

    def set_punctuation(self, punctuation):
        self.punctuation = punctuation

    def greet(self):
        return f"{self.greeting} {self.name}{self.punctuation}"


class RecordingPass(CompilerPass):
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def process(self, container, tags):
        self.log.append((self.name, sorted(tags)))


class TestDefinitions:
    """Test registering and looking up definitions."""

    def test_register_returns_definition(self):
        container = ContainerBuilder()
        definition = container.register("greeter", Greeter)

        assert isinstance(definition, Definition)
        assert container.get_definition("greeter") is definition
        assert container.has("greeter")
        assert container.has_definition("greeter")

    def test_missing_definition(self):
        container = ContainerBuilder()

        with pytest.raises(ServiceNotFoundError) as exc_info:
            container.get_definition("missing")

        assert 'non-existent service "missing"' in str(exc_info.value)

    def test_invalid_service_id(self):
        container = ContainerBuilder()

        with pytest.raises(InvalidConfigurationError):
            container.register(" padded ")

    def test_definition_replaces_alias(self):
        container = ContainerBuilder()
        container.register("target")
        container.set_alias("name", "target")
        container.register("name")

        assert not container.has_alias("name")
        assert container.has_definition("name")

    def test_service_container_is_always_available(self):
        container = ContainerBuilder()

        assert container.has(SERVICE_CONTAINER)
        assert container.get(SERVICE_CONTAINER) is container


class TestAliases:
    """Test alias resolution."""

    def test_resolve_transitively(self):
        container = ContainerBuilder()
        container.register("target")
        container.set_alias("middle", "target")
        container.set_alias("outer", Alias("middle", public=True))

        assert container.resolve_alias("outer") == "target"
        assert container.find_definition("outer") is container.get_definition("target")
        assert container.get_alias("outer").public is True

    def test_self_reference_rejected(self):
        container = ContainerBuilder()

        with pytest.raises(InvalidConfigurationError):
            container.set_alias("loop", "loop")

    def test_cycle_detected(self):
        container = ContainerBuilder()
        container.set_alias("a", "b")
        container.set_alias("b", "c")
        container.set_alias("c", "a")

        with pytest.raises(CircularReferenceError) as exc_info:
            container.resolve_alias("a")

        assert exc_info.value.path == ["a", "b", "c", "a"]

    def test_dangling_alias_fails_compile(self):
        container = ContainerBuilder()
        container.set_alias("name", "missing")

        with pytest.raises(ServiceNotFoundError):
            container.compile()


class TestParameters:
    """Test parameter placeholders."""

    def test_whole_placeholder_keeps_type(self):
        container = ContainerBuilder({"tables": ["a", "b"], "ref": "%tables%"})

        assert container.resolve_value("%tables%") == ["a", "b"]
        assert container.resolve_value("%ref%") == ["a", "b"]

    def test_embedded_placeholders(self):
        container = ContainerBuilder({"kernel.cache_dir": "/var/cache", "port": 3306})

        assert container.resolve_value("%kernel.cache_dir%/proxies") == "/var/cache/proxies"
        assert container.resolve_value("host:%port%") == "host:3306"
        assert container.resolve_value("100%% sure") == "100% sure"

    def test_nested_structures(self):
        container = ContainerBuilder({"name": "app"})

        assert container.resolve_value({"%name%": ["%name%", 1]}) == {"app": ["app", 1]}

    def test_missing_parameter(self):
        container = ContainerBuilder()

        with pytest.raises(ParameterNotFoundError):
            container.resolve_value("%missing%")

    def test_circular_parameter(self):
        container = ContainerBuilder({"a": "%b%", "b": "%a%"})

        with pytest.raises(CircularReferenceError):
            container.resolve_value("%a%")

    def test_array_inside_string_rejected(self):
        container = ContainerBuilder({"list": [1]})

        with pytest.raises(InvalidConfigurationError):
            container.resolve_value("value: %list%")

    def test_parameters_resolved_on_compile(self):
        container = ContainerBuilder({"dir": "/tmp", "proxy_dir": "%dir%/proxies"})
        container.compile()

        assert container.get_parameter("proxy_dir") == "/tmp/proxies"


class TestCompile:
    """Test the compile lifecycle."""

    def test_passes_run_in_insertion_order(self):
        log = []
        container = ContainerBuilder()
        container.register("tagged").add_tag("my.tag")
        container.add_compiler_pass(RecordingPass("first", log))
        container.add_compiler_pass(RecordingPass("second", log))
        container.compile()

        assert log == [("first", ["my.tag"]), ("second", ["my.tag"])]

    def test_compile_is_single_shot(self):
        container = ContainerBuilder()
        container.compile()

        assert container.is_compiled
        with pytest.raises(FrozenContainerError):
            container.compile()
        with pytest.raises(FrozenContainerError):
            container.register("late")

    def test_reference_to_abstract_rejected(self):
        container = ContainerBuilder()
        container.register("template").set_abstract()
        container.register("user").set_arguments([Reference("template")])

        with pytest.raises(InvalidReferenceError) as exc_info:
            container.compile()

        assert '"user"' in str(exc_info.value)
        assert '"template"' in str(exc_info.value)

    def test_child_definitions_are_flattened(self):
        container = ContainerBuilder()
        container.register("parent", Greeter).set_abstract().set_arguments(["Hello"]).add_tag(
            "parent.tag"
        )
        child = container.set_definition("child", ChildDefinition(parent="parent"))
        child.add_argument("World").add_method_call("set_punctuation", ["!"])
        container.compile()

        definition = container.get_definition("child")
        assert type(definition) is Definition
        assert definition.cls is Greeter
        assert definition.arguments == ["Hello", "World"]
        assert definition.abstract is False
        assert definition.tags == {}

    def test_replace_argument_on_child(self):
        container = ContainerBuilder()
        container.register("parent", Greeter).set_abstract().set_arguments(["Hello", "nobody"])
        container.set_definition("child", ChildDefinition(parent="parent")).replace_argument(1, "you")
        container.compile()

        assert container.get_definition("child").arguments == ["Hello", "you"]

    def test_missing_parent(self):
        container = ContainerBuilder()
        container.set_definition("child", ChildDefinition(parent="missing"))

        with pytest.raises(ServiceNotFoundError):
            container.compile()

    def test_extension_receives_all_blocks(self):
        seen = []

        class RecordingExtension(Extension):
            alias = "recording"

            def load(self, configs, container):
                seen.extend(configs)

        container = ContainerBuilder()
        container.register_extension(RecordingExtension())
        container.load_from_extension("recording", {"a": 1})
        container.load_from_extension("recording", {"a": 2})
        container.compile()

        assert seen == [{"a": 1}, {"a": 2}]

    def test_unknown_extension(self):
        container = ContainerBuilder()

        with pytest.raises(InvalidConfigurationError) as exc_info:
            container.load_from_extension("nope", {})

        assert '"nope"' in str(exc_info.value)


class TestInstantiation:
    """Test the minimal service instantiation."""

    def test_get_builds_and_shares(self):
        container = ContainerBuilder({"greeting": "Hi"})
        container.register("greeter", Greeter).set_arguments(["%greeting%", "Ann"]).add_method_call(
            "set_punctuation", ["!"]
        )
        container.compile()

        greeter = container["greeter"]
        assert greeter.greet() == "Hi Ann!"
        assert container.get("greeter") is greeter

    def test_class_from_import_path(self):
        container = ContainerBuilder()
        container.register("filter", "cask.dbal.schema_filter:RegexSchemaAssetFilter").set_arguments(
            ["^app_"]
        )
        container.compile()

        assert container.get("filter")("app_users") is True

    def test_optional_reference(self):
        container = ContainerBuilder()
        container.register("greeter", Greeter).set_arguments(
            ["Hi", Reference("missing", InvalidBehavior.IGNORE)]
        )
        container.compile()

        assert container.get("greeter").name is None

    def test_abstract_cannot_be_built(self):
        container = ContainerBuilder()
        container.register("template", Greeter).set_abstract()
        container.compile()

        with pytest.raises(InvalidReferenceError):
            container.get("template")

    def test_service_locator_is_lazy(self):
        built = []

        def make_greeter():
            built.append("greeter")
            return Greeter("Hi")

        container = ContainerBuilder()
        container.register("greeter").set_factory(make_greeter)
        container.register("locator", ServiceLocator).set_arguments(
            [ServiceLocatorArgument({"greeter": Reference("greeter")})]
        )
        container.compile()

        locator = container.get("locator")
        assert built == []
        assert "greeter" in locator
        assert locator.get("greeter").greeting == "Hi"
        assert built == ["greeter"]
        with pytest.raises(ServiceNotFoundError):
            locator.get("other")

    def test_load_class(self):
        assert load_class("cask.core.container:ContainerBuilder") is ContainerBuilder
        assert load_class("cask.core.container.ContainerBuilder") is ContainerBuilder
        with pytest.raises(ImportError):
            load_class("NoModule")
