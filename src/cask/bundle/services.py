"""Base service definitions the DBAL and ORM sections build upon.

Per-connection and per-entity-manager services are declared as children of
the abstract templates registered here. Classes are referenced through
``cask.*.class`` parameters so applications can swap implementations; a
parameter that is already set (from a YAML file or the kernel) is kept.
"""

from __future__ import annotations

from cask.core import SERVICE_CONTAINER, ContainerBuilder, Definition, InvalidBehavior, Reference
from cask.core.definition import ServiceLocatorArgument

DBAL_CLASSES = {
    "cask.dbal.connection.class": "dbal.Connection",
    "cask.dbal.connection_factory.class": "dbal.ConnectionFactory",
    "cask.dbal.configuration.class": "cask.dbal.configuration:Configuration",
    "cask.dbal.connection.event_manager.class": "dbal.ContainerAwareEventManager",
    "cask.dbal.logger.class": "dbal.logging.SqlLogger",
    "cask.dbal.logger.profiling.class": "dbal.logging.DebugStack",
    "cask.dbal.logger.backtrace.class": "dbal.logging.BacktraceLogger",
    "cask.dbal.logger.chain.class": "dbal.logging.LoggerChain",
    "cask.dbal.schema_asset_filter_manager.class": "cask.dbal.schema_filter:SchemaAssetsFilterManager",
    "cask.dbal.well_known_schema_asset_filter.class": "cask.dbal.schema_filter:BlacklistSchemaAssetFilter",
    "cask.dbal.regex_schema_asset_filter.class": "cask.dbal.schema_filter:RegexSchemaAssetFilter",
    "cask.dbal.primary_read_replica_connection.class": "dbal.connections.PrimaryReadReplicaConnection",
    "cask.dbal.pooling_shard_connection.class": "dbal.sharding.PoolingShardConnection",
    "cask.dbal.pooling_shard_manager.class": "dbal.sharding.PoolingShardManager",
    "cask.registry.class": "cask.Registry",
}

ORM_CLASSES = {
    "cask.orm.configuration.class": "orm.Configuration",
    "cask.orm.entity_manager.class": "orm.EntityManager",
    "cask.orm.manager_configurator.class": "orm.ManagerConfigurator",
    "cask.orm.cache.provider.class": "orm.cache.CacheProvider",
    "cask.orm.metadata.driver_chain.class": "orm.mapping.MappingDriverChain",
    "cask.orm.metadata.annotation.class": "orm.mapping.AnnotationDriver",
    "cask.orm.metadata.attribute.class": "orm.mapping.AttributeDriver",
    "cask.orm.metadata.xml.class": "orm.mapping.SimplifiedXmlDriver",
    "cask.orm.metadata.yml.class": "orm.mapping.SimplifiedYamlDriver",
    "cask.orm.metadata.php.class": "orm.mapping.PHPDriver",
    "cask.orm.metadata.staticphp.class": "orm.mapping.StaticPHPDriver",
    "cask.orm.metadata.annotation_reader.class": "orm.mapping.AnnotationReader",
    "cask.orm.class_metadata_factory.class": "orm.mapping.ClassMetadataFactory",
    "cask.orm.default_repository.class": "orm.EntityRepository",
    "cask.orm.container_repository_factory.class": "orm.ContainerRepositoryFactory",
    "cask.orm.entity_listener_resolver.class": "cask.orm.listeners:ContainerEntityListenerResolver",
    "cask.orm.listeners.resolve_target_entity.class": "orm.tools.ResolveTargetEntityListener",
    "cask.orm.listeners.attach_entity_listeners.class": "orm.tools.AttachEntityListenersListener",
    "cask.orm.naming_strategy.default.class": "orm.mapping.DefaultNamingStrategy",
    "cask.orm.naming_strategy.underscore.class": "orm.mapping.UnderscoreNamingStrategy",
    "cask.orm.quote_strategy.default.class": "orm.mapping.DefaultQuoteStrategy",
    "cask.orm.quote_strategy.ansi.class": "orm.mapping.AnsiQuoteStrategy",
    "cask.orm.second_level_cache.default_cache_factory.class": "orm.cache.DefaultCacheFactory",
    "cask.orm.second_level_cache.default_region.class": "orm.cache.region.DefaultRegion",
    "cask.orm.second_level_cache.filelock_region.class": "orm.cache.region.FileLockRegion",
    "cask.orm.second_level_cache.logger_chain.class": "orm.cache.logging.CacheLoggerChain",
    "cask.orm.second_level_cache.logger_statistics.class": "orm.cache.logging.StatisticsCacheLogger",
    "cask.orm.second_level_cache.cache_configuration.class": "orm.cache.CacheConfiguration",
    "cask.orm.second_level_cache.regions_configuration.class": "orm.cache.RegionsConfiguration",
}


def _set_default_parameters(container: ContainerBuilder, parameters: dict[str, str]) -> None:
    for name, value in parameters.items():
        if not container.has_parameter(name):
            container.set_parameter(name, value)


def _template(container: ContainerBuilder, service_id: str, cls: str) -> Definition:
    return container.register(service_id, cls).set_abstract()


def register_dbal_services(container: ContainerBuilder) -> None:
    """Register connection templates, loggers, filters and the registry."""
    _set_default_parameters(container, DBAL_CLASSES)

    container.register(
        "cask.dbal.connection_factory", "%cask.dbal.connection_factory.class%"
    ).set_arguments(["%cask.dbal.connection_factory.types%"])

    _template(container, "cask.dbal.connection", "%cask.dbal.connection.class%").set_factory(
        (Reference("cask.dbal.connection_factory"), "create_connection")
    )
    _template(container, "cask.dbal.connection.configuration", "%cask.dbal.configuration.class%")
    _template(
        container, "cask.dbal.connection.event_manager", "%cask.dbal.connection.event_manager.class%"
    ).set_arguments([Reference(SERVICE_CONTAINER)])

    container.register("cask.dbal.logger", "%cask.dbal.logger.class%").set_arguments(
        [Reference("logger", InvalidBehavior.IGNORE)]
    )
    _template(container, "cask.dbal.logger.profiling", "%cask.dbal.logger.profiling.class%")
    _template(container, "cask.dbal.logger.backtrace", "%cask.dbal.logger.backtrace.class%")
    _template(container, "cask.dbal.logger.chain", "%cask.dbal.logger.chain.class%")

    container.register(
        "cask.dbal.well_known_schema_asset_filter",
        "%cask.dbal.well_known_schema_asset_filter.class%",
    ).set_arguments([[]])
    _template(
        container,
        "cask.dbal.schema_asset_filter_manager",
        "%cask.dbal.schema_asset_filter_manager.class%",
    )

    container.register("cask", "%cask.registry.class%").set_public().set_arguments(
        [
            Reference(SERVICE_CONTAINER),
            "%cask.connections%",
            "%cask.entity_managers%",
            "%cask.default_connection%",
            "%cask.default_entity_manager%",
        ]
    )


def register_orm_services(container: ContainerBuilder) -> None:
    """Register entity manager templates, strategies and shared ORM services."""
    _set_default_parameters(container, ORM_CLASSES)

    _template(container, "cask.orm.configuration", "%cask.orm.configuration.class%")
    _template(
        container, "cask.orm.manager_configurator.abstract", "%cask.orm.manager_configurator.class%"
    ).set_arguments([[], {}])
    _template(
        container, "cask.orm.entity_listener_resolver", "%cask.orm.entity_listener_resolver.class%"
    ).set_arguments([Reference(SERVICE_CONTAINER)])

    container.register(
        "cask.orm.metadata.annotation_reader", "%cask.orm.metadata.annotation_reader.class%"
    )
    container.register(
        "cask.orm.container_repository_factory", "%cask.orm.container_repository_factory.class%"
    ).set_arguments([ServiceLocatorArgument()])

    for strategy in ("default", "underscore"):
        container.register(
            f"cask.orm.naming_strategy.{strategy}", f"%cask.orm.naming_strategy.{strategy}.class%"
        )
    for strategy in ("default", "ansi"):
        container.register(
            f"cask.orm.quote_strategy.{strategy}", f"%cask.orm.quote_strategy.{strategy}.class%"
        )

    container.register(
        "cask.orm.listeners.resolve_target_entity",
        "%cask.orm.listeners.resolve_target_entity.class%",
    )
