"""Schema asset filters.

A schema asset filter is a predicate over database object names: it returns
False for assets (tables, sequences) that schema tooling must ignore. Assets
may be given as names or as objects exposing a ``name`` attribute.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable


def asset_name(asset: Any) -> str:
    if isinstance(asset, str):
        return asset
    return asset.name


class RegexSchemaAssetFilter:
    """Accepts asset names matching a regular expression."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(pattern)

    def __call__(self, asset: Any) -> bool:
        return self._regex.search(asset_name(asset)) is not None


class BlacklistSchemaAssetFilter:
    """Rejects a fixed set of table names."""

    def __init__(self, blacklist: Iterable[str]):
        self.blacklist = list(blacklist)

    def __call__(self, asset: Any) -> bool:
        return asset_name(asset) not in self.blacklist


class SchemaAssetsFilterManager:
    """Chains filters in order; an asset survives only if every filter accepts it."""

    def __init__(self, filters: Iterable[Callable[[Any], bool]]):
        self.filters = list(filters)

    def __call__(self, asset: Any) -> bool:
        return all(schema_filter(asset) for schema_filter in self.filters)
