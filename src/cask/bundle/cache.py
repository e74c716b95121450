"""Cache drivers and the second-level cache graph of an entity manager.

A cache driver of type ``pool`` is backed by a cache pool service (created as
a child of ``cache.system`` or ``cache.app`` unless an existing pool is named)
and wrapped in a provider definition. A driver of type ``service`` points at
an existing service id. Either way the driver is exposed under the alias
``cask.orm.{em}_{cache_name}``.
"""

from __future__ import annotations

from loguru import logger

from cask.core import (
    ChildDefinition,
    ContainerBuilder,
    Definition,
    InvalidReferenceError,
    Reference,
    SchemaError,
)

from .config import CacheDriverConfig, RegionConfig, SecondLevelCacheConfig

REGION_TYPES = ("default", "filelock", "service")


def _pool_name(cache_name: str) -> str:
    return cache_name[: -len("_cache")] if cache_name.endswith("_cache") else cache_name


def load_cache_driver(
    container: ContainerBuilder,
    cache_name: str,
    em_name: str,
    driver: CacheDriverConfig,
    parent_pool: str = "cache.app",
) -> str:
    """Register one cache driver and return the alias pointing at it."""
    alias_id = f"cask.orm.{em_name}_{cache_name}"
    driver_type = driver.type or "pool"

    if driver_type == "service":
        if not driver.id:
            raise SchemaError(
                f'The cache "{cache_name}" of entity manager "{em_name}" is of type "service" '
                f'but has no "id".',
                path=f"cask.orm.entity_managers.{em_name}.{cache_name}_driver.id",
            )
        if not container.has(driver.id):
            raise InvalidReferenceError(
                f'The cache driver "{driver.id}" configured at '
                f'"cask.orm.entity_managers.{em_name}.{cache_name}_driver.id" is not a registered '
                f"service.",
                service_id=driver.id,
            )
        service_id = driver.id
    elif driver_type == "pool":
        pool = driver.pool or _create_pool(container, em_name, cache_name, parent_pool)
        service_id = _create_provider(container, pool)
    else:
        raise SchemaError(
            f'Unknown cache of type "{driver_type}" configured for cache "{cache_name}" in '
            f'entity manager "{em_name}".',
            path=f"cask.orm.entity_managers.{em_name}.{cache_name}_driver.type",
        )

    container.set_alias(alias_id, service_id)
    return alias_id


def _create_pool(container: ContainerBuilder, em_name: str, cache_name: str, parent: str) -> str:
    pool_id = f"cache.cask.orm.{em_name}.{_pool_name(cache_name)}"
    container.set_definition(pool_id, ChildDefinition(parent=parent)).add_tag("cache.pool")
    return pool_id


def _create_provider(container: ContainerBuilder, pool: str) -> str:
    provider_id = f"cask.orm.cache.provider.{pool}"
    container.register(provider_id, "%cask.orm.cache.provider.class%").set_arguments(
        [Reference(pool)]
    )
    return provider_id


class SecondLevelCacheBuilder:
    """Builds regions, region factory and loggers for one entity manager."""

    def __init__(self, container: ContainerBuilder, debug: bool = False):
        self.container = container
        self.debug = debug

    def load(self, em_name: str, config: SecondLevelCacheConfig, orm_configuration: Definition) -> None:
        container = self.container
        prefix = f"cask.orm.{em_name}_second_level_cache"

        driver_id = load_cache_driver(
            container,
            "second_level_cache.region_cache_driver",
            em_name,
            config.region_cache_driver,
        )

        cache_configuration = container.register(
            f"{prefix}.cache_configuration",
            "%cask.orm.second_level_cache.cache_configuration.class%",
        )
        regions_id = f"{prefix}.regions_configuration"
        regions = container.register(
            regions_id, "%cask.orm.second_level_cache.regions_configuration.class%"
        ).set_arguments([config.region_lifetime, config.region_lock_lifetime])

        factory_id = f"{prefix}.default_cache_factory"
        factory = container.register(
            factory_id,
            config.factory or "%cask.orm.second_level_cache.default_cache_factory.class%",
        ).set_arguments([Reference(regions_id), Reference(driver_id)])

        for name, region in config.regions.items():
            region_ref = self._load_region(em_name, name, region, regions)
            regions.add_method_call("set_lifetime", [name, region.lifetime])
            factory.add_method_call("set_region", [region_ref])

        log_enabled = self.debug if config.log_enabled is None else config.log_enabled
        if log_enabled:
            chain = container.register(
                f"{prefix}.logger_chain", "%cask.orm.second_level_cache.logger_chain.class%"
            )
            container.register(
                f"{prefix}.logger_statistics",
                "%cask.orm.second_level_cache.logger_statistics.class%",
            )
            chain.add_method_call("set_logger", ["statistics", Reference(f"{prefix}.logger_statistics")])
            cache_configuration.add_method_call("set_cache_logger", [Reference(f"{prefix}.logger_chain")])

            for name, cache_logger in config.loggers.items():
                if not cache_logger.service:
                    raise SchemaError(
                        f'The second level cache logger "{name}" of entity manager "{em_name}" '
                        f'needs a "service".',
                        path=f"cask.orm.entity_managers.{em_name}.second_level_cache.loggers.{name}",
                    )
                container.set_alias(f"{prefix}.logger.{name}", cache_logger.service)
                chain.add_method_call("set_logger", [name, Reference(cache_logger.service)])

        cache_configuration.add_method_call("set_cache_factory", [Reference(factory_id)])
        cache_configuration.add_method_call("set_second_level_cache_enabled", [config.enabled])
        cache_configuration.add_method_call("set_regions_configuration", [Reference(regions_id)])

        orm_configuration.add_method_call("set_second_level_cache_enabled", [config.enabled])
        orm_configuration.add_method_call(
            "set_second_level_cache_configuration", [Reference(f"{prefix}.cache_configuration")]
        )
        logger.debug(f"Registered second level cache for '{em_name}' with {len(config.regions)} region(s)")

    def _load_region(
        self, em_name: str, name: str, region: RegionConfig, regions: Definition
    ) -> Reference:
        container = self.container
        prefix = f"cask.orm.{em_name}_second_level_cache"
        region_id = f"{prefix}.region.{name}"

        if region.type not in REGION_TYPES:
            raise SchemaError(
                f'Unknown region type "{region.type}" for region "{name}", expected one of '
                f'"{", ".join(REGION_TYPES)}".',
                path=f"cask.orm.entity_managers.{em_name}.second_level_cache.regions.{name}.type",
            )

        if region.type == "service":
            if not region.service or not container.has(region.service):
                raise InvalidReferenceError(
                    f'The region "{name}" of entity manager "{em_name}" needs an existing '
                    f'"service", got "{region.service}".',
                    service_id=region_id,
                )
            container.set_alias(region_id, region.service)
            return Reference(region.service)

        driver_id = load_cache_driver(
            container,
            f"second_level_cache.region.{name}_driver",
            em_name,
            region.cache_driver,
        )
        container.register(
            region_id, "%cask.orm.second_level_cache.default_region.class%"
        ).set_arguments([name, Reference(driver_id), region.lifetime])
        region_ref = Reference(region_id)

        if region.type == "filelock":
            filelock_id = f"{region_id}_filelock"
            container.register(
                filelock_id, "%cask.orm.second_level_cache.filelock_region.class%"
            ).set_arguments([region_ref, region.lock_path, region.lock_lifetime])
            regions.add_method_call("set_lock_lifetime", [name, region.lock_lifetime])
            region_ref = Reference(filelock_id)

        return region_ref
