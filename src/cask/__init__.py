"""Cask - compile database configuration into a service definition graph.

Cask turns a declarative ``cask`` configuration (connections, entity managers,
metadata caches, listeners and schema filters) into the service definitions
an application container needs, and runs the bundle's compiler passes over
the resulting graph.

Quick Start:
    >>> from cask import ContainerBuilder, OrmBundle
    >>>
    >>> container = ContainerBuilder({"kernel.debug": False, "kernel.bundles": {}})
    >>> OrmBundle().build(container)
    >>> container.load_from_extension("cask", {
    ...     "dbal": {"driver": "pdo_sqlite", "memory": True},
    ...     "orm": {"auto_mapping": True},
    ... })
    >>> container.compile()
    >>> container.get_definition("cask.orm.default_entity_manager").public
    True
"""

from loguru import logger

__version__ = "0.1.0"

# Core exports
from cask.core import (
    Alias,
    CaskError,
    ChildDefinition,
    CompilerPass,
    ContainerBuilder,
    Definition,
    InvalidConfigurationError,
    Reference,
    YamlFileLoader,
)

# Bundle exports
from cask.bundle import BundleMetadata, OrmBundle, OrmExtension

__all__ = [
    # Container
    "Alias",
    "ChildDefinition",
    "CompilerPass",
    "ContainerBuilder",
    "Definition",
    "Reference",
    "YamlFileLoader",
    # Errors
    "CaskError",
    "InvalidConfigurationError",
    # Bundle
    "BundleMetadata",
    "OrmBundle",
    "OrmExtension",
]

# Configure default logger
logger.disable("cask")  # Disabled by default, users can enable with logger.enable("cask")
