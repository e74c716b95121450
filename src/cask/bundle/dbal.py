"""Connection definitions built from the ``dbal`` configuration section.

For every connection ``name`` this registers:

- ``cask.dbal.{name}_connection``: the connection itself, whose first
  argument is the flattened option map handed to the connection factory
- ``cask.dbal.{name}_connection.configuration``: SQL logger, auto-commit and
  savepoint settings (schema filters are attached later by a compiler pass)
- ``cask.dbal.{name}_connection.event_manager``
- ``cask.dbal.{name}_regex_schema_filter`` when ``schema_filter`` is set
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from cask.core import Alias, ChildDefinition, ContainerBuilder, Reference, SchemaError

from .config import ConnectionConfig, DbalConfig, DriverConfig

SCHEMA_FILTER_TAG = "cask.dbal.schema_filter"

# Always present in an option map, None when not configured
BASE_OPTIONS = ("dbname", "host", "port", "user", "password")

# Options emitted only when set, in this order
DRIVER_OPTIONS = (
    "url",
    "charset",
    "unix_socket",
    "sslmode",
    "sslrootcert",
    "sslcert",
    "sslkey",
    "sslcrl",
    "default_dbname",
    "application_name",
    "servicename",
    "service",
    "pooled",
    "instancename",
    "connectstring",
    "path",
    "memory",
    "server",
    "persistent",
    "protocol",
    "multiple_active_result_sets",
)

RENAMED_OPTIONS = {
    "multiple_active_result_sets": "MultipleActiveResultSets",
    "server_version": "serverVersion",
    "driver_class": "driverClass",
    "wrapper_class": "wrapperClass",
    "keep_replica": "keepReplica",
    "shard_manager_class": "shardManagerClass",
}

# Connection-wide keys that stay at the top level of replica and shard setups
NON_REWRITTEN_KEYS = frozenset(
    {
        "driver",
        "driverOptions",
        "driverClass",
        "wrapperClass",
        "keepReplica",
        "shardChoser",
        "shardManagerClass",
        "platform",
        "primary",
        "replicas",
        "global",
        "shards",
        "serverVersion",
        "defaultTableOptions",
    }
)


def connection_id(name: str) -> str:
    return f"cask.dbal.{name}_connection"


def driver_options(config: DriverConfig) -> dict[str, Any]:
    """Option map for one set of connection parameters."""
    options = {key: getattr(config, key) for key in BASE_OPTIONS}
    for key in DRIVER_OPTIONS:
        value = getattr(config, key)
        if value is not None:
            options[RENAMED_OPTIONS.get(key, key)] = value
    return options


def connection_options(config: ConnectionConfig) -> dict[str, Any]:
    """Flatten a connection's configuration into the factory's option map.

    Replica pools move every connection-level parameter under ``primary``;
    sharded connections move them under ``global``.
    """
    options = driver_options(config)
    options["driver"] = config.driver
    options["driverOptions"] = dict(config.options)
    options["defaultTableOptions"] = dict(config.default_table_options)

    for key in ("server_version", "driver_class", "wrapper_class"):
        value = getattr(config, key)
        if value is not None:
            options[RENAMED_OPTIONS[key]] = value
    if config.platform_service:
        options["platform"] = Reference(config.platform_service)

    if config.replicas:
        options = _rewrite(options, "primary")
        options["replicas"] = {
            name: driver_options(replica) for name, replica in config.replicas.items()
        }
        if config.keep_replica is not None:
            options["keepReplica"] = config.keep_replica
        options.setdefault("wrapperClass", "%cask.dbal.primary_read_replica_connection.class%")
    elif config.shards:
        options = _rewrite(options, "global")
        options["shards"] = [
            {**driver_options(shard), "id": shard.id} for shard in config.shards
        ]
        if config.shard_choser_service:
            options["shardChoser"] = Reference(config.shard_choser_service)
        else:
            options["shardChoser"] = config.shard_choser
        options.setdefault("wrapperClass", "%cask.dbal.pooling_shard_connection.class%")
        options["shardManagerClass"] = (
            config.shard_manager_class or "%cask.dbal.pooling_shard_manager.class%"
        )

    return options


def _rewrite(options: dict[str, Any], target: str) -> dict[str, Any]:
    rewritten = {key: value for key, value in options.items() if key in NON_REWRITTEN_KEYS}
    rewritten[target] = {
        key: value for key, value in options.items() if key not in NON_REWRITTEN_KEYS
    }
    return rewritten


class DbalBuilder:
    """Registers the definitions of every configured connection."""

    def __init__(self, container: ContainerBuilder):
        self.container = container
        self.debug = bool(container.parameters.get("kernel.debug", False))

    def load(self, config: DbalConfig) -> str:
        """Register all connections and return the default connection name."""
        container = self.container
        default = config.default_connection or next(iter(config.connections))
        if default not in config.connections:
            raise SchemaError(
                f'The default connection "{default}" is not configured. '
                f'Configured connections: "{", ".join(config.connections)}".',
                path="cask.dbal.default_connection",
            )

        container.set_alias("database_connection", Alias(connection_id(default), public=True))
        container.set_alias("cask.dbal.event_manager", f"{connection_id(default)}.event_manager")

        container.set_parameter(
            "cask.dbal.connection_factory.types",
            {name: {"class": type_config.class_name} for name, type_config in config.types.items()},
        )
        container.set_parameter(
            "cask.connections", {name: connection_id(name) for name in config.connections}
        )
        container.set_parameter("cask.default_connection", default)

        for name, connection in config.connections.items():
            self.load_connection(name, connection)

        logger.debug(f"Registered {len(config.connections)} connection(s), default '{default}'")
        return default

    def load_connection(self, name: str, config: ConnectionConfig) -> None:
        container = self.container
        service_id = connection_id(name)

        configuration = container.set_definition(
            f"{service_id}.configuration", ChildDefinition(parent="cask.dbal.connection.configuration")
        )

        sql_logger = self._sql_logger(name, config)
        if sql_logger is not None:
            configuration.add_method_call("set_sql_logger", [sql_logger])
        if config.auto_commit is not None:
            configuration.add_method_call("set_auto_commit", [config.auto_commit])
        if config.use_savepoints:
            configuration.add_method_call("set_nest_transactions_with_savepoints", [True])

        if config.schema_filter:
            container.register(
                f"cask.dbal.{name}_regex_schema_filter", "%cask.dbal.regex_schema_asset_filter.class%"
            ).set_arguments([config.schema_filter]).add_tag(SCHEMA_FILTER_TAG, {"connection": name})

        container.set_definition(
            f"{service_id}.event_manager", ChildDefinition(parent="cask.dbal.connection.event_manager")
        )

        options = connection_options(config)
        definition = container.set_definition(service_id, ChildDefinition(parent="cask.dbal.connection"))
        definition.set_public().set_arguments(
            [
                options,
                Reference(f"{service_id}.configuration"),
                Reference(f"{service_id}.event_manager"),
                dict(config.mapping_types),
            ]
        )
        if "wrapperClass" in options:
            definition.set_class(options["wrapperClass"])

        logger.debug(f"Registered connection '{name}' ({config.driver})")

    def _sql_logger(self, name: str, config: ConnectionConfig) -> Reference | None:
        logging = self.debug if config.logging is None else config.logging
        profiling = self.debug if config.profiling is None else config.profiling

        sql_logger = Reference("cask.dbal.logger") if logging else None
        if not profiling:
            return sql_logger

        template = (
            "cask.dbal.logger.backtrace"
            if config.profiling_collect_backtrace
            else "cask.dbal.logger.profiling"
        )
        profiling_id = f"{template}.{name}"
        self.container.set_definition(profiling_id, ChildDefinition(parent=template))
        profiling_logger = Reference(profiling_id)

        if sql_logger is None:
            return profiling_logger

        chain_id = f"cask.dbal.logger.chain.{name}"
        self.container.set_definition(
            chain_id, ChildDefinition(parent="cask.dbal.logger.chain")
        ).add_argument([sql_logger, profiling_logger])
        return Reference(chain_id)
