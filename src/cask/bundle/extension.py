"""The ``cask`` container extension."""

from __future__ import annotations

from typing import Any

from loguru import logger

from cask.core import ContainerBuilder, Extension, SchemaError

from .config import process_configuration
from .dbal import DbalBuilder
from .orm import OrmBuilder
from .services import register_dbal_services, register_orm_services


class OrmExtension(Extension):
    """Turns the merged ``cask`` configuration into connection and manager definitions.

    Example:
        >>> container.register_extension(OrmExtension())
        >>> container.load_from_extension("cask", {"dbal": {"driver": "pdo_sqlite"}})
        >>> container.compile()
        >>> container.get_parameter("cask.default_connection")
        'default'
    """

    alias = "cask"

    def load(self, configs: list[dict[str, Any]], container: ContainerBuilder) -> None:
        config = process_configuration(configs)

        if config.orm is not None and config.dbal is None:
            raise SchemaError(
                'Configuring the "orm" section requires the "dbal" section.', path="cask.orm"
            )
        if config.dbal is None:
            logger.debug("No dbal section configured, nothing to load")
            return

        register_dbal_services(container)
        default_connection = DbalBuilder(container).load(config.dbal)

        if config.orm is None:
            container.set_parameter("cask.entity_managers", {})
            container.set_parameter("cask.default_entity_manager", None)
            return

        register_orm_services(container)
        OrmBuilder(container, list(config.dbal.connections), default_connection).load(config.orm)
