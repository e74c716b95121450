"""Tests for schema asset filters and the per-connection configuration."""

from dataclasses import dataclass

from cask.dbal import (
    BlacklistSchemaAssetFilter,
    Configuration,
    RegexSchemaAssetFilter,
    SchemaAssetsFilterManager,
)


@dataclass
class Table:
    name: str


class TestFilters:
    """Test the individual predicates."""

    def test_regex_filter(self):
        schema_filter = RegexSchemaAssetFilter("^(?!t4)")

        assert schema_filter("t1") is True
        assert schema_filter("t4") is False
        assert schema_filter(Table("t4_archive")) is False

    def test_regex_searches_anywhere(self):
        schema_filter = RegexSchemaAssetFilter("audit")

        assert schema_filter("app_audit_log") is True
        assert schema_filter("users") is False

    def test_blacklist_filter(self):
        schema_filter = BlacklistSchemaAssetFilter(["cache_items", "sessions"])

        assert schema_filter("sessions") is False
        assert schema_filter(Table("cache_items")) is False
        assert schema_filter("users") is True

    def test_empty_blacklist_accepts_everything(self):
        assert BlacklistSchemaAssetFilter([])("anything") is True


class TestManager:
    """Test chaining filters."""

    def test_every_filter_must_accept(self):
        manager = SchemaAssetsFilterManager(
            [BlacklistSchemaAssetFilter(["sessions"]), RegexSchemaAssetFilter("^app_")]
        )

        assert manager("app_users") is True
        assert manager("users") is False
        assert manager("sessions") is False

    def test_stops_at_first_rejection(self):
        seen = []

        def record(asset):
            seen.append(asset)
            return True

        manager = SchemaAssetsFilterManager([lambda asset: False, record])

        assert manager("t1") is False
        assert seen == []

    def test_no_filters(self):
        assert SchemaAssetsFilterManager([])(Table("t1")) is True


class TestConfiguration:
    """Test the connection configuration defaults."""

    def test_defaults(self):
        configuration = Configuration()

        assert configuration.get_sql_logger() is None
        assert configuration.get_auto_commit() is True
        assert configuration.get_schema_assets_filter() is None
        assert configuration.get_nest_transactions_with_savepoints() is False

    def test_setters(self):
        configuration = Configuration()
        manager = SchemaAssetsFilterManager([])

        configuration.set_schema_assets_filter(manager)
        configuration.set_nest_transactions_with_savepoints(1)

        assert configuration.get_schema_assets_filter() is manager
        assert configuration.get_nest_transactions_with_savepoints() is True
