"""The ORM bundle: configuration schema, extension and compiler passes.

Key Components:
    OrmBundle: Registers the extension and passes on a container
    OrmExtension: Builds connection and entity manager definitions
    process_configuration: Normalizes, merges and validates ``cask`` blocks
"""

from cask.bundle.bundle import OrmBundle
from cask.bundle.config import BundleMetadata, CaskConfig, process_configuration
from cask.bundle.extension import OrmExtension
from cask.bundle.passes import (
    EntityListenerPass,
    RegisterEventListenersAndSubscribersPass,
    SchemaFilterPass,
    WellKnownSchemaFilterPass,
)

__all__ = [
    "BundleMetadata",
    "CaskConfig",
    "EntityListenerPass",
    "OrmBundle",
    "OrmExtension",
    "RegisterEventListenersAndSubscribersPass",
    "SchemaFilterPass",
    "WellKnownSchemaFilterPass",
    "process_configuration",
]
