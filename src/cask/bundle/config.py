"""Configuration tree for the ``cask`` extension.

Raw configuration blocks (defaults, imports, overrides) arrive as plain
dictionaries. Each block is first *normalized* against the dataclass schema
below: ``-`` in option names becomes ``_``, shorthands are expanded and
unknown options are rejected with the full path of the offending node. The
normalized blocks are then deep-merged in load order (later blocks win,
lists are replaced) and finally turned into typed dataclass instances.

Classes:
    CaskConfig: Root of the tree (``dbal`` and ``orm`` sections)
    DbalConfig / ConnectionConfig: Connections and custom types
    OrmConfig / EntityManagerConfig: Entity managers and global ORM options
    BundleMetadata: Location of one enabled bundle

Example:
    >>> config = process_configuration([
    ...     {"dbal": {"driver": "pdo_sqlite", "memory": True}},
    ...     {"dbal": {"user": "app"}},
    ... ])
    >>> config.dbal.connections["default"].user
    'app'
"""

from __future__ import annotations

import dataclasses
import types
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Union, get_args, get_origin, get_type_hints

from cask.core.errors import SchemaError

ROOT = "cask"


@dataclass
class BundleMetadata:
    """Where a bundle lives and the namespace its mapped classes use."""

    path: str
    namespace: str


# DBAL


@dataclass
class TypeConfig:
    class_name: str | None = field(default=None, metadata={"key": "class"})

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, str):
            return {"class": value}
        return value


@dataclass
class DriverConfig:
    """Connection parameters shared by connections, replicas and shards."""

    dbname: str | None = None
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    url: str | None = None
    charset: str | None = None
    # mysql
    unix_socket: str | None = None
    # pgsql
    sslmode: str | None = None
    sslrootcert: str | None = None
    sslcert: str | None = None
    sslkey: str | None = None
    sslcrl: str | None = None
    default_dbname: str | None = None
    application_name: str | None = None
    # oracle
    servicename: str | None = None
    service: bool | None = None
    pooled: bool | None = None
    instancename: str | None = None
    connectstring: str | None = None
    # sqlite
    path: str | None = None
    memory: bool | None = None
    # sqlanywhere
    server: str | None = None
    persistent: bool | None = None
    # ibm_db2
    protocol: str | None = None
    # sqlsrv
    multiple_active_result_sets: bool | None = field(
        default=None, metadata={"key": "MultipleActiveResultSets"}
    )


@dataclass
class ReplicaConfig(DriverConfig):
    pass


@dataclass
class ShardConfig(DriverConfig):
    id: int | None = None


@dataclass
class ConnectionConfig(DriverConfig):
    """One named connection."""

    driver: str = "pdo_mysql"
    host: str | None = "localhost"
    user: str | None = "root"
    server_version: str | None = None
    driver_class: str | None = None
    wrapper_class: str | None = None
    platform_service: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    mapping_types: dict[str, str] = field(default_factory=dict)
    default_table_options: dict[str, Any] = field(default_factory=dict)
    auto_commit: bool | None = None
    logging: bool | None = None
    profiling: bool | None = None
    profiling_collect_backtrace: bool = False
    schema_filter: str | None = None
    use_savepoints: bool | None = None
    keep_replica: bool | None = None
    replicas: dict[str, ReplicaConfig] = field(default_factory=dict)
    shards: list[ShardConfig] = field(default_factory=list)
    shard_choser: str | None = None
    shard_choser_service: str | None = None
    shard_manager_class: str | None = None


@dataclass
class DbalConfig:
    default_connection: str | None = None
    types: dict[str, TypeConfig] = field(default_factory=dict)
    connections: dict[str, ConnectionConfig] = field(default_factory=dict)

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        # Connection options given directly under "dbal" describe one connection
        if value is None:
            value = {}
        if isinstance(value, dict) and "connections" not in value:
            section = {k: v for k, v in value.items() if k in ("default_connection", "types")}
            connection = {k: v for k, v in value.items() if k not in section}
            name = section.get("default_connection") or "default"
            section["connections"] = {name: connection}
            return section
        return value


# ORM


@dataclass
class CacheDriverConfig:
    type: str | None = None
    id: str | None = None
    pool: str | None = None

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, str):
            return {"type": value}
        return value


@dataclass
class MappingConfig:
    mapping: bool = True
    type: str | None = None
    dir: str | None = None
    prefix: str | None = None
    alias: str | None = None
    is_bundle: bool | None = None

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, bool):
            return {"mapping": value}
        return value


@dataclass
class DqlConfig:
    string_functions: dict[str, str] = field(default_factory=dict)
    numeric_functions: dict[str, str] = field(default_factory=dict)
    datetime_functions: dict[str, str] = field(default_factory=dict)


@dataclass
class FilterConfig:
    class_name: str | None = field(default=None, metadata={"key": "class"})
    enabled: bool = False
    parameters: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, str):
            return {"class": value}
        return value


@dataclass
class RegionConfig:
    type: str = "default"
    cache_driver: CacheDriverConfig = field(default_factory=CacheDriverConfig)
    lock_path: str = "%kernel.cache_dir%/cask/orm/slc/filelock"
    lock_lifetime: int = 60
    lifetime: int = 0
    service: str | None = None
    name: str | None = None


@dataclass
class CacheLoggerConfig:
    service: str | None = None
    name: str | None = None

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, str):
            return {"service": value}
        return value


@dataclass
class SecondLevelCacheConfig:
    enabled: bool = True
    region_cache_driver: CacheDriverConfig = field(default_factory=CacheDriverConfig)
    region_lock_lifetime: int = 60
    region_lifetime: int = 3600
    log_enabled: bool | None = None
    factory: str | None = None
    regions: dict[str, RegionConfig] = field(default_factory=dict)
    loggers: dict[str, CacheLoggerConfig] = field(default_factory=dict)

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, bool):
            return {"enabled": value}
        return value


@dataclass
class ListenerEventConfig:
    type: str | None = None
    method: str | None = None

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        if isinstance(value, str):
            return {"type": value}
        return value


@dataclass
class EntityListenerConfig:
    events: list[ListenerEventConfig] = field(default_factory=list)


@dataclass
class ListenedEntityConfig:
    listeners: dict[str, EntityListenerConfig] = field(default_factory=dict)


@dataclass
class EntityListenersConfig:
    entities: dict[str, ListenedEntityConfig] = field(default_factory=dict)


@dataclass
class EntityManagerConfig:
    """One named entity manager."""

    connection: str | None = None
    class_metadata_factory_name: str = "%cask.orm.class_metadata_factory.class%"
    default_repository_class: str = "%cask.orm.default_repository.class%"
    auto_mapping: bool = False
    naming_strategy: str = "cask.orm.naming_strategy.default"
    quote_strategy: str = "cask.orm.quote_strategy.default"
    entity_listener_resolver: str | None = None
    repository_factory: str = "cask.orm.container_repository_factory"
    metadata_cache_driver: CacheDriverConfig = field(default_factory=CacheDriverConfig)
    query_cache_driver: CacheDriverConfig = field(default_factory=CacheDriverConfig)
    result_cache_driver: CacheDriverConfig = field(default_factory=CacheDriverConfig)
    hydrators: dict[str, str] = field(default_factory=dict)
    mappings: dict[str, MappingConfig] = field(default_factory=dict)
    dql: DqlConfig = field(default_factory=DqlConfig)
    filters: dict[str, FilterConfig] = field(default_factory=dict)
    second_level_cache: SecondLevelCacheConfig | None = None
    entity_listeners: EntityListenersConfig | None = None


@dataclass
class OrmConfig:
    default_entity_manager: str | None = None
    auto_generate_proxy_classes: Any = False
    proxy_dir: str = "%kernel.cache_dir%/cask/orm/Proxies"
    proxy_namespace: str = "Proxies"
    resolve_target_entities: dict[str, str] = field(default_factory=dict)
    entity_managers: dict[str, EntityManagerConfig] = field(default_factory=dict)

    @staticmethod
    def from_shorthand(value: Any) -> Any:
        # Entity manager options given directly under "orm" describe one manager
        if value is None:
            value = {}
        if isinstance(value, dict) and "entity_managers" not in value:
            globals_ = {k for k in _schema(OrmConfig) if k != "entity_managers"}
            section = {k: v for k, v in value.items() if k in globals_}
            manager = {k: v for k, v in value.items() if k not in section}
            name = section.get("default_entity_manager") or "default"
            section["entity_managers"] = {name: manager}
            return section
        return value


@dataclass
class CaskConfig:
    dbal: DbalConfig | None = None
    orm: OrmConfig | None = None


# Processing


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "map"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


@lru_cache(maxsize=None)
def _schema(cls: type) -> dict[str, tuple[dataclasses.Field, Any]]:
    """Config key -> (field, resolved type hint) for a config dataclass."""
    hints = get_type_hints(cls)
    return {
        f.metadata.get("key", f.name): (f, hints[f.name]) for f in dataclasses.fields(cls)
    }


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    if get_origin(hint) in (Union, types.UnionType):
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0], True
    return hint, False


def normalize(cls: type, value: Any, path: str) -> dict[str, Any]:
    """Canonicalize one raw block for ``cls`` without applying defaults."""
    schema = _schema(cls)
    if isinstance(value, dict):
        value = {
            key if key in schema else str(key).replace("-", "_"): item
            for key, item in value.items()
        }

    shorthand = getattr(cls, "from_shorthand", None)
    if shorthand is not None:
        value = shorthand(value)
    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise SchemaError(
            f'Invalid type for path "{path}". Expected a map, but got {type_name(value)}.',
            path=path,
        )

    result = {}
    for key, item in value.items():
        if key not in schema:
            raise SchemaError(
                f'Unrecognized option "{key}" under "{path}". '
                f'Available options are "{", ".join(sorted(schema))}".',
                path=f"{path}.{key}",
            )
        _, hint = schema[key]
        result[key] = _normalize_value(hint, item, f"{path}.{key}")
    return result


def _normalize_value(hint: Any, value: Any, path: str) -> Any:
    hint, optional = _unwrap_optional(hint)
    if dataclasses.is_dataclass(hint):
        return normalize(hint, value, path)
    if value is None and optional:
        return None

    origin = get_origin(hint)
    if origin is dict:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise SchemaError(
                f'Invalid type for path "{path}". Expected a map, but got {type_name(value)}.',
                path=path,
            )
        _, item_hint = get_args(hint)
        return {
            str(key): _normalize_value(item_hint, item, f"{path}.{key}")
            for key, item in value.items()
        }
    if origin is list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise SchemaError(
                f'Invalid type for path "{path}". Expected a list, but got {type_name(value)}.',
                path=path,
            )
        (item_hint,) = get_args(hint)
        return [_normalize_value(item_hint, item, f"{path}.{i}") for i, item in enumerate(value)]
    return value


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two normalized blocks; maps merge key by key, the rest is replaced."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def build(cls: type, data: dict[str, Any], path: str) -> Any:
    """Create a config dataclass from a normalized, merged mapping."""
    kwargs = {}
    for key, (f, hint) in _schema(cls).items():
        if key in data:
            kwargs[f.name] = _convert(hint, data[key], f"{path}.{key}")
    return cls(**kwargs)


def _convert(hint: Any, value: Any, path: str) -> Any:
    hint, optional = _unwrap_optional(hint)
    if value is None and (optional or hint is Any):
        return None
    if hint is Any:
        return value
    if dataclasses.is_dataclass(hint):
        return build(hint, value, path)

    origin = get_origin(hint)
    if origin is dict:
        _, item_hint = get_args(hint)
        return {key: _convert(item_hint, item, f"{path}.{key}") for key, item in value.items()}
    if origin is list:
        (item_hint,) = get_args(hint)
        return [_convert(item_hint, item, f"{path}.{i}") for i, item in enumerate(value)]

    if hint is bool:
        if isinstance(value, bool):
            return value
    elif hint is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    elif hint is str:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)

    expected = {bool: "bool", int: "int", str: "string"}.get(hint, getattr(hint, "__name__", hint))
    raise SchemaError(
        f'Invalid type for path "{path}". Expected {expected}, but got {type_name(value)}.',
        path=path,
    )


def process_configuration(configs: list[dict[str, Any]]) -> CaskConfig:
    """Normalize, merge and build every configuration block of the extension."""
    merged: dict[str, Any] = {}
    for block in configs:
        merged = merge_configs(merged, normalize(CaskConfig, block, ROOT))

    config = build(CaskConfig, merged, ROOT)
    _validate(config)
    return config


def _validate(config: CaskConfig) -> None:
    if config.dbal is not None:
        if not config.dbal.connections:
            raise SchemaError(
                'The path "cask.dbal.connections" should have at least 1 element(s) defined.',
                path="cask.dbal.connections",
            )
        for name, connection in config.dbal.connections.items():
            for index, shard in enumerate(connection.shards):
                if shard.id is None:
                    raise SchemaError(
                        f'The child node "id" at path "cask.dbal.connections.{name}.shards.{index}" '
                        f"must be configured.",
                        path=f"cask.dbal.connections.{name}.shards.{index}.id",
                    )
            if connection.shards and not connection.shard_choser_service and not connection.shard_choser:
                raise SchemaError(
                    f'Connection "{name}" defines shards but no "shard_choser_service".',
                    path=f"cask.dbal.connections.{name}.shard_choser_service",
                )

    if config.orm is not None:
        if not config.orm.entity_managers:
            raise SchemaError(
                'The path "cask.orm.entity_managers" should have at least 1 element(s) defined.',
                path="cask.orm.entity_managers",
            )
        auto_mapped = [name for name, em in config.orm.entity_managers.items() if em.auto_mapping]
        if len(auto_mapped) > 1:
            raise SchemaError(
                f'You cannot enable "auto_mapping" on more than one entity manager at the same '
                f'time (found in "{", ".join(auto_mapped)}").',
                path="cask.orm.entity_managers",
            )
        for name, em in config.orm.entity_managers.items():
            for filter_name, filter_config in em.filters.items():
                if not filter_config.class_name:
                    raise SchemaError(
                        f'The child node "class" at path "cask.orm.entity_managers.{name}.filters.'
                        f'{filter_name}" must be configured.',
                        path=f"cask.orm.entity_managers.{name}.filters.{filter_name}.class",
                    )
