"""Entity manager definitions built from the ``orm`` configuration section.

For every entity manager ``name`` this registers, among others:

- ``cask.orm.{name}_entity_manager`` (public, built by the entity manager
  class's ``create`` factory and configured by its manager configurator)
- ``cask.orm.{name}_configuration`` with one call per configured feature
- ``cask.orm.{name}_metadata_driver`` and its typed drivers
- ``cask.orm.{name}_{metadata|query|result}_cache`` aliases
- ``cask.orm.{name}_entity_listener_resolver`` (definition or alias)
- ``cask.orm.{name}_listeners.attach_entity_listeners``, tagged as an event
  listener of the manager's own connection
"""

from __future__ import annotations

from loguru import logger

from cask.core import (
    Alias,
    ChildDefinition,
    ContainerBuilder,
    Definition,
    InvalidReferenceError,
    Reference,
    SchemaError,
)

from .cache import SecondLevelCacheBuilder, load_cache_driver
from .config import EntityManagerConfig, MappingConfig, OrmConfig
from .dbal import connection_id
from .mapping import MetadataDriverBuilder, bundle_metadata

EVENT_LISTENER_TAG = "cask.event_listener"
EVENT_SUBSCRIBER_TAG = "cask.event_subscriber"

CACHE_POOLS = {
    "metadata_cache": "cache.system",
    "query_cache": "cache.app",
    "result_cache": "cache.app",
}

DQL_FUNCTIONS = {
    "string_functions": "add_custom_string_function",
    "numeric_functions": "add_custom_numeric_function",
    "datetime_functions": "add_custom_datetime_function",
}


def entity_manager_id(name: str) -> str:
    return f"cask.orm.{name}_entity_manager"


class OrmBuilder:
    """Registers the definitions of every configured entity manager."""

    def __init__(self, container: ContainerBuilder, connections: list[str], default_connection: str):
        self.container = container
        self.connections = connections
        self.default_connection = default_connection
        self.debug = bool(container.parameters.get("kernel.debug", False))
        self.bundles = bundle_metadata(container.parameters.get("kernel.bundles") or {})

    def load(self, config: OrmConfig) -> str:
        """Register all entity managers and return the default manager name."""
        container = self.container
        default = config.default_entity_manager or next(iter(config.entity_managers))
        if default not in config.entity_managers:
            raise SchemaError(
                f'The default entity manager "{default}" is not configured. '
                f'Configured entity managers: "{", ".join(config.entity_managers)}".',
                path="cask.orm.default_entity_manager",
            )

        container.set_parameter(
            "cask.entity_managers",
            {name: entity_manager_id(name) for name in config.entity_managers},
        )
        container.set_parameter("cask.default_entity_manager", default)
        for key in ("auto_generate_proxy_classes", "proxy_dir", "proxy_namespace"):
            container.set_parameter(f"cask.orm.{key}", getattr(config, key))
        container.set_alias("cask.orm.entity_manager", Alias(entity_manager_id(default), public=True))

        self._add_auto_mappings(config)
        for name, entity_manager in config.entity_managers.items():
            self.load_entity_manager(name, entity_manager)

        if config.resolve_target_entities:
            resolver = container.find_definition("cask.orm.listeners.resolve_target_entity")
            for interface, implementation in config.resolve_target_entities.items():
                resolver.add_method_call("add_resolve_target_entity", [interface, implementation, {}])
            resolver.add_tag(EVENT_SUBSCRIBER_TAG)

        logger.debug(
            f"Registered {len(config.entity_managers)} entity manager(s), default '{default}'"
        )
        return default

    def _add_auto_mappings(self, config: OrmConfig) -> None:
        """Map every enabled bundle no manager maps explicitly to the auto-mapping manager."""
        for entity_manager in config.entity_managers.values():
            if not entity_manager.auto_mapping:
                continue
            for bundle in self.bundles:
                if any(bundle in em.mappings for em in config.entity_managers.values()):
                    continue
                entity_manager.mappings[bundle] = MappingConfig(is_bundle=True)

    def load_entity_manager(self, name: str, config: EntityManagerConfig) -> None:
        container = self.container
        connection = config.connection or self.default_connection
        if connection not in self.connections:
            raise SchemaError(
                f'The entity manager "{name}" uses the connection "{connection}", which is not '
                f"configured.",
                path=f"cask.orm.entity_managers.{name}.connection",
            )

        configuration_id = f"cask.orm.{name}_configuration"
        configuration = container.set_definition(
            configuration_id, ChildDefinition(parent="cask.orm.configuration")
        )

        drivers = MetadataDriverBuilder(container, name, self.bundles)
        chain_id = drivers.load(config.mappings)

        caches = {
            cache_name: load_cache_driver(
                container, cache_name, name, getattr(config, f"{cache_name}_driver"), parent
            )
            for cache_name, parent in CACHE_POOLS.items()
        }

        resolver_id = f"cask.orm.{name}_entity_listener_resolver"
        if config.entity_listener_resolver:
            if not container.has(config.entity_listener_resolver):
                raise InvalidReferenceError(
                    f'The entity listener resolver "{config.entity_listener_resolver}" configured at '
                    f'"cask.orm.entity_managers.{name}.entity_listener_resolver" is not a '
                    f"registered service.",
                    service_id=config.entity_listener_resolver,
                )
            container.set_alias(resolver_id, config.entity_listener_resolver)
        else:
            container.set_definition(resolver_id, ChildDefinition(parent="cask.orm.entity_listener_resolver"))

        if drivers.aliases:
            configuration.add_method_call("set_entity_namespaces", [drivers.aliases])

        attach_id = f"cask.orm.{name}_listeners.attach_entity_listeners"
        attach = container.register(attach_id, "%cask.orm.listeners.attach_entity_listeners.class%")
        attach.add_tag(EVENT_LISTENER_TAG, {"event": "loadClassMetadata", "connection": connection})

        if config.second_level_cache is not None:
            SecondLevelCacheBuilder(container, self.debug).load(
                name, config.second_level_cache, configuration
            )

        calls = [
            ("set_metadata_cache_impl", Reference(caches["metadata_cache"])),
            ("set_query_cache_impl", Reference(caches["query_cache"])),
            ("set_result_cache_impl", Reference(caches["result_cache"])),
            ("set_metadata_driver_impl", Reference(chain_id)),
            ("set_proxy_dir", "%cask.orm.proxy_dir%"),
            ("set_proxy_namespace", "%cask.orm.proxy_namespace%"),
            ("set_auto_generate_proxy_classes", "%cask.orm.auto_generate_proxy_classes%"),
            ("set_class_metadata_factory_name", config.class_metadata_factory_name),
            ("set_default_repository_class_name", config.default_repository_class),
            ("set_naming_strategy", Reference(config.naming_strategy)),
            ("set_quote_strategy", Reference(config.quote_strategy)),
            ("set_entity_listener_resolver", Reference(resolver_id)),
        ]
        if config.repository_factory:
            calls.append(("set_repository_factory", Reference(config.repository_factory)))
        for method, argument in calls:
            configuration.add_method_call(method, [argument])

        for hydrator, cls in config.hydrators.items():
            configuration.add_method_call("add_custom_hydration_mode", [hydrator, cls])
        for section, method in DQL_FUNCTIONS.items():
            for function, cls in getattr(config.dql, section).items():
                configuration.add_method_call(method, [function, cls])

        enabled_filters = []
        filter_parameters = {}
        for filter_name, filter_config in config.filters.items():
            configuration.add_method_call("add_filter", [filter_name, filter_config.class_name])
            if filter_config.enabled:
                enabled_filters.append(filter_name)
            if filter_config.parameters:
                filter_parameters[filter_name] = dict(filter_config.parameters)

        configurator_id = f"cask.orm.{name}_manager_configurator"
        container.set_definition(
            configurator_id, ChildDefinition(parent="cask.orm.manager_configurator.abstract")
        ).replace_argument(0, enabled_filters).replace_argument(1, filter_parameters)

        entity_manager = Definition("%cask.orm.entity_manager.class%")
        entity_manager.set_public().set_factory(("%cask.orm.entity_manager.class%", "create"))
        entity_manager.set_arguments([Reference(connection_id(connection)), Reference(configuration_id)])
        entity_manager.set_configurator((Reference(configurator_id), "configure"))
        container.set_definition(entity_manager_id(name), entity_manager)

        container.set_alias(
            f"{entity_manager_id(name)}.event_manager", f"{connection_id(connection)}.event_manager"
        )

        if config.entity_listeners is not None:
            self._attach_declared_listeners(attach, config)

        logger.debug(f"Registered entity manager '{name}' on connection '{connection}'")

    @staticmethod
    def _attach_declared_listeners(attach: Definition, config: EntityManagerConfig) -> None:
        for entity, entity_config in config.entity_listeners.entities.items():
            for listener, listener_config in entity_config.listeners.items():
                for event in listener_config.events:
                    attach.add_method_call(
                        "add_entity_listener", [entity, listener, event.type, event.method]
                    )
