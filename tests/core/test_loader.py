"""Tests for the YAML file loader."""

from pathlib import Path

import pytest

from cask.core import ChildDefinition, ContainerBuilder, InvalidBehavior, Reference, SchemaError, YamlFileLoader
from cask.core.loader import parse_reference

FIXTURES = Path(__file__).parent.parent / "fixtures" / "config"


@pytest.fixture
def loaded():
    container = ContainerBuilder()
    YamlFileLoader(container, FIXTURES).load("loader_services.yml")
    return container


class TestParseReference:
    """Test ``@`` reference parsing."""

    def test_references(self):
        assert parse_reference("@service") == Reference("service")
        assert parse_reference("@?service") == Reference("service", InvalidBehavior.IGNORE)
        assert parse_reference("@@escaped") == "@escaped"
        assert parse_reference("plain") == "plain"

    def test_nested(self):
        assert parse_reference({"a": ["@b"]}) == {"a": [Reference("b")]}


class TestYamlFileLoader:
    """Test loading files into a container."""

    def test_imports_are_overridden(self, loaded):
        assert loaded.get_parameter("app.name") == "overridden"
        assert loaded.get_parameter("app.tables") == ["cache_items"]
        assert loaded.has_definition("app.greeting")

    def test_child_definition(self, loaded):
        definition = loaded.get_definition("app.filter_manager")

        assert isinstance(definition, ChildDefinition)
        assert definition.parent == "app.template"
        assert definition.public is True
        assert definition.arguments == [[Reference("app.greeting")]]
        assert definition.tags == {"app.tag": [{"connection": "default"}], "app.plain_tag": [{}]}

    def test_calls_and_escapes(self, loaded):
        definition = loaded.get_definition("app.regex")

        assert definition.arguments == ["@literal"]
        assert definition.get_method_calls("unused_method")[0].arguments == [
            Reference("app.greeting"),
            Reference("app.optional", InvalidBehavior.IGNORE),
        ]

    def test_aliases(self, loaded):
        assert loaded.resolve_alias("app.alias") == "app.filter_manager"
        assert loaded.get_alias("app.public_alias").public is True

    def test_compiled_services_work(self, loaded):
        loaded.compile()
        manager = loaded.get("app.alias")

        assert manager("users") is True
        assert manager("cache_items") is False

    def test_circular_import(self):
        container = ContainerBuilder()

        with pytest.raises(SchemaError, match="Circular import"):
            YamlFileLoader(container, FIXTURES).load("loader_circular_a.yml")

    def test_unknown_service_key(self):
        container = ContainerBuilder()

        with pytest.raises(SchemaError) as exc_info:
            YamlFileLoader(container, FIXTURES).load("loader_unknown_key.yml")

        assert "argumentz" in str(exc_info.value)
        assert exc_info.value.path == "services.app.broken"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaError):
            YamlFileLoader(ContainerBuilder(), tmp_path).load("missing.yml")
