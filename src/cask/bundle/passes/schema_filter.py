"""Schema asset filter passes.

Schema filters decide which tables, sequences and views the schema tooling
of a connection manages. Two passes cooperate:

1. ``WellKnownSchemaFilterPass`` collects the tables owned by framework
   subsystems (cache pools, locks, the messenger, sessions) and points the
   shared ``cask.dbal.well_known_schema_asset_filter`` at them.
2. ``SchemaFilterPass`` groups every ``cask.dbal.schema_filter`` service per
   connection and wires a dedicated filter manager into that connection's
   configuration.

Example:
    >>> container.register("app.filter", TableFilter).add_tag(
    ...     "cask.dbal.schema_filter", {"connection": "default"}
    ... )
    >>> container.add_compiler_pass(SchemaFilterPass())
    >>> container.compile()
    >>> container.get_definition("cask.dbal.default_connection.configuration").method_calls
    [MethodCall(method='set_schema_assets_filter', arguments=[...])]
"""

from __future__ import annotations

from loguru import logger

from cask.core import ChildDefinition, CompilerPass, ContainerBuilder, Reference, TagIndex

from ..dbal import SCHEMA_FILTER_TAG, connection_id

WELL_KNOWN_TABLE_TAG = "cask.dbal.well_known_table"
WELL_KNOWN_FILTER = "cask.dbal.well_known_schema_asset_filter"
FILTER_MANAGER = "cask.dbal.schema_asset_filter_manager"

DEFAULT_TABLES = {
    "cache": "cache_items",
    "lock": "lock_keys",
    "messenger": "messenger_messages",
    "session": "sessions",
}


def connection_names(container: ContainerBuilder) -> list[str]:
    return list(container.parameters.get("cask.connections") or {})


class WellKnownSchemaFilterPass(CompilerPass):
    """Exclude tables owned by framework subsystems from schema tooling.

    Services tagged ``cask.dbal.well_known_table`` declare a ``subsystem``
    and optionally the ``table`` they use (the subsystem default otherwise)
    and the ``connection`` holding it. The blacklist filter is tagged for the
    declared connections, or for every connection when any entry leaves the
    connection open.
    """

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        if not container.has_definition(WELL_KNOWN_FILTER):
            return

        tables: list[str] = []
        connections: list[str] = []
        any_connection = False

        for tagged in tags.find(WELL_KNOWN_TABLE_TAG):
            subsystem = tagged.attributes.get("subsystem")
            if subsystem not in DEFAULT_TABLES:
                logger.warning(
                    f"Skipping '{tagged.service_id}': unknown subsystem '{subsystem}'"
                )
                continue

            table = tagged.attributes.get("table") or DEFAULT_TABLES[subsystem]
            if table not in tables:
                tables.append(table)

            connection = tagged.attributes.get("connection")
            if connection is None:
                any_connection = True
            elif connection not in connections:
                connections.append(connection)

        if not tables:
            return

        if any_connection:
            connections = connection_names(container)

        definition = container.get_definition(WELL_KNOWN_FILTER)
        definition.replace_argument(0, tables)
        definition.clear_tag(SCHEMA_FILTER_TAG)
        for connection in connections:
            definition.add_tag(SCHEMA_FILTER_TAG, {"connection": connection})

        logger.debug(f"Well-known tables {tables} excluded on connections {connections}")


class SchemaFilterPass(CompilerPass):
    """Attach one filter manager per connection that has schema filters."""

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        connections = connection_names(container)
        if not connections:
            return

        filters: dict[str, list[str]] = {connection: [] for connection in connections}
        for tagged in tags.find(SCHEMA_FILTER_TAG):
            connection = tagged.attributes.get("connection")
            if connection is None:
                targets = connections
            elif connection in filters:
                targets = [connection]
            else:
                logger.warning(
                    f"Ignoring schema filter '{tagged.service_id}' for unknown connection "
                    f"'{connection}'"
                )
                continue

            for target in targets:
                if tagged.service_id not in filters[target]:
                    filters[target].append(tagged.service_id)

        for connection, service_ids in filters.items():
            if not service_ids:
                continue

            # The well-known filter always runs first
            if WELL_KNOWN_FILTER in service_ids:
                service_ids.remove(WELL_KNOWN_FILTER)
                service_ids.insert(0, WELL_KNOWN_FILTER)

            configuration_id = f"{connection_id(connection)}.configuration"
            if not container.has(configuration_id):
                logger.warning(
                    f"Connection '{connection}' has schema filters but no configuration "
                    f"'{configuration_id}'"
                )
                continue

            manager_id = f"cask.dbal.{connection}_schema_asset_filter_manager"
            manager = ChildDefinition(parent=FILTER_MANAGER)
            manager.set_arguments([[Reference(service_id) for service_id in service_ids]])
            container.set_definition(manager_id, manager)

            container.find_definition(configuration_id).add_method_call(
                "set_schema_assets_filter", [Reference(manager_id)], unique=True
            )
            logger.debug(f"Connection '{connection}' filtered by {service_ids}")
