"""Tests for the schema asset filter passes."""

from cask.bundle.passes import SchemaFilterPass, WellKnownSchemaFilterPass
from cask.core import ChildDefinition, ContainerBuilder, Definition, Reference

WELL_KNOWN = "cask.dbal.well_known_schema_asset_filter"


def manager_filters(container, connection):
    definition = container.get_definition(f"cask.dbal.{connection}_schema_asset_filter_manager")
    return [reference.id for reference in definition.arguments[0]]


def filter_calls(container, connection):
    definition = container.get_definition(f"cask.dbal.{connection}_connection.configuration")
    return definition.get_method_calls("set_schema_assets_filter")


class TestSchemaFilterPass:
    """Test filters wired through the extension."""

    def test_well_known_filter_comes_first(self, load_config):
        container = load_config("dbal_schema_filters")

        assert manager_filters(container, "default") == [
            WELL_KNOWN,
            "app.filter.default_only",
            "app.filter.everywhere",
            "cask.dbal.default_regex_schema_filter",
        ]
        assert manager_filters(container, "secondary") == [WELL_KNOWN, "app.filter.everywhere"]

    def test_unknown_connection_is_ignored(self, load_config):
        container = load_config("dbal_schema_filters")

        assert "app.filter.unknown_connection" not in manager_filters(container, "default")
        assert "app.filter.unknown_connection" not in manager_filters(container, "secondary")

    def test_configuration_gets_manager(self, load_config):
        container = load_config("dbal_schema_filters")
        calls = filter_calls(container, "default")

        assert len(calls) == 1
        assert calls[0].arguments == [Reference("cask.dbal.default_schema_asset_filter_manager")]

    def test_well_known_tables(self, load_config):
        container = load_config("dbal_schema_filters")
        definition = container.get_definition(WELL_KNOWN)

        assert definition.arguments == [["cache_items", "app_locks"]]
        assert definition.get_tag("cask.dbal.schema_filter") == [
            {"connection": "default"},
            {"connection": "secondary"},
        ]

    def test_filters_reject_the_union_of_tables(self, load_config):
        container = load_config("dbal_schema_filters")
        schema_filter = container.get("cask.dbal.default_connection.configuration").get_schema_assets_filter()

        assert [schema_filter(table) for table in ("cache_items", "app_locks", "t1", "t2", "t4")] == [False] * 5
        assert schema_filter("t3") is True
        assert schema_filter("users") is True

        secondary = container.get("cask.dbal.secondary_connection.configuration").get_schema_assets_filter()
        assert secondary("t1") is True
        assert secondary("t2") is False

    def test_connection_without_filters_gets_no_call(self, container):
        container.load_from_extension(
            "cask",
            {"dbal": {"connections": {"default": {"driver": "pdo_sqlite"}, "other": {"driver": "pdo_sqlite"}}}},
        )
        container.register("app.filter", "conftest:DummySchemaAssetsFilter").set_arguments(["t1"]).add_tag(
            "cask.dbal.schema_filter", {"connection": "default"}
        )
        container.compile()

        assert len(filter_calls(container, "default")) == 1
        assert filter_calls(container, "other") == []
        assert not container.has_definition("cask.dbal.other_schema_asset_filter_manager")
        assert container.get("cask.dbal.other_connection.configuration").get_schema_assets_filter() is None


class TestPassesInIsolation:
    """Test the passes on hand-built graphs."""

    def _container(self, connections=("default", "other")):
        container = ContainerBuilder(
            {"cask.connections": {name: f"cask.dbal.{name}_connection" for name in connections}}
        )
        container.register(WELL_KNOWN, "app:Blacklist").set_arguments([[]])
        container.register("cask.dbal.schema_asset_filter_manager", "app:Manager").set_abstract()
        container.register("cask.dbal.connection.configuration", "app:Configuration").set_abstract()
        for name in connections:
            container.set_definition(
                f"cask.dbal.{name}_connection.configuration",
                ChildDefinition(parent="cask.dbal.connection.configuration"),
            )
        return container

    def test_nothing_tagged_changes_nothing(self):
        container = self._container()
        WellKnownSchemaFilterPass().process(container, container.tag_index())
        SchemaFilterPass().process(container, container.tag_index())

        assert container.get_definition(WELL_KNOWN).arguments == [[]]
        assert not container.get_definition(WELL_KNOWN).tags
        assert filter_calls(container, "default") == []

    def test_no_connections_is_a_no_op(self):
        container = ContainerBuilder()
        container.register("app.filter").add_tag("cask.dbal.schema_filter")

        SchemaFilterPass().process(container, container.tag_index())

        assert list(container.definitions) == ["app.filter"]

    def test_declared_connection_only(self):
        container = self._container()
        container.register("app.sessions").add_tag(
            "cask.dbal.well_known_table", {"subsystem": "session", "connection": "other"}
        )
        container.register("app.unknown").add_tag("cask.dbal.well_known_table", {"subsystem": "mailer"})

        WellKnownSchemaFilterPass().process(container, container.tag_index())
        SchemaFilterPass().process(container, container.tag_index())

        assert container.get_definition(WELL_KNOWN).arguments == [["sessions"]]
        assert filter_calls(container, "default") == []
        assert manager_filters(container, "other") == [WELL_KNOWN]

    def test_connection_without_configuration_gets_no_manager(self):
        container = self._container()
        container.definitions.pop("cask.dbal.other_connection.configuration")
        container.register("app.filter", "app:Filter").add_tag("cask.dbal.schema_filter")

        SchemaFilterPass().process(container, container.tag_index())

        assert manager_filters(container, "default") == ["app.filter"]
        assert not container.has("cask.dbal.other_schema_asset_filter_manager")

    def test_duplicate_tables_once(self):
        container = self._container()
        container.register("app.messenger").add_tag("cask.dbal.well_known_table", {"subsystem": "messenger"})
        container.register("app.queue").add_tag(
            "cask.dbal.well_known_table", {"subsystem": "messenger", "table": "messenger_messages"}
        )

        WellKnownSchemaFilterPass().process(container, container.tag_index())

        assert container.get_definition(WELL_KNOWN).arguments == [["messenger_messages"]]

    def test_rerun_does_not_duplicate_calls(self):
        container = self._container()
        container.set_definition("app.filter", Definition("app:Filter")).add_tag("cask.dbal.schema_filter")

        for _ in range(2):
            WellKnownSchemaFilterPass().process(container, container.tag_index())
            SchemaFilterPass().process(container, container.tag_index())

        assert len(filter_calls(container, "default")) == 1
        assert manager_filters(container, "default") == ["app.filter"]
