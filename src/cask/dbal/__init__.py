"""Connection-level objects the DBAL definitions are built from."""

from cask.dbal.configuration import Configuration
from cask.dbal.schema_filter import (
    BlacklistSchemaAssetFilter,
    RegexSchemaAssetFilter,
    SchemaAssetsFilterManager,
)

__all__ = [
    "BlacklistSchemaAssetFilter",
    "Configuration",
    "RegexSchemaAssetFilter",
    "SchemaAssetsFilterManager",
]
