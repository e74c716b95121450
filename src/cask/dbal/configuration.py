"""Per-connection configuration object built from a compiled container."""

from __future__ import annotations

from typing import Any, Callable


class Configuration:
    """Connection-level settings wired by the DBAL extension.

    Only the settings the extension emits calls for are modelled here; the
    schema assets filter stays None until a filter is attached.
    """

    def __init__(self):
        self._sql_logger: Any = None
        self._auto_commit = True
        self._schema_assets_filter: Callable[[Any], bool] | None = None
        self._nest_transactions_with_savepoints = False

    def set_sql_logger(self, logger: Any) -> None:
        self._sql_logger = logger

    def get_sql_logger(self) -> Any:
        return self._sql_logger

    def set_auto_commit(self, auto_commit: bool) -> None:
        self._auto_commit = bool(auto_commit)

    def get_auto_commit(self) -> bool:
        return self._auto_commit

    def set_schema_assets_filter(self, schema_assets_filter: Callable[[Any], bool] | None) -> None:
        self._schema_assets_filter = schema_assets_filter

    def get_schema_assets_filter(self) -> Callable[[Any], bool] | None:
        return self._schema_assets_filter

    def set_nest_transactions_with_savepoints(self, enabled: bool) -> None:
        self._nest_transactions_with_savepoints = bool(enabled)

    def get_nest_transactions_with_savepoints(self) -> bool:
        return self._nest_transactions_with_savepoints
