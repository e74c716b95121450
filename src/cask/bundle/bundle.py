"""Bundle entry point wiring the extension and its compiler passes."""

from __future__ import annotations

from cask.core import ContainerBuilder

from .extension import OrmExtension
from .passes import (
    EntityListenerPass,
    RegisterEventListenersAndSubscribersPass,
    SchemaFilterPass,
    WellKnownSchemaFilterPass,
)


class OrmBundle:
    """Registers the ``cask`` extension and the bundle's passes.

    Example:
        >>> container = ContainerBuilder({"kernel.debug": False})
        >>> OrmBundle().build(container)
        >>> container.load_from_extension("cask", {"dbal": {"url": "sqlite:///app.db"}})
        >>> container.compile()
    """

    def build(self, container: ContainerBuilder) -> None:
        container.register_extension(OrmExtension())

        # Well-known tables must be tagged before filters are grouped
        container.add_compiler_pass(WellKnownSchemaFilterPass())
        container.add_compiler_pass(SchemaFilterPass())
        container.add_compiler_pass(EntityListenerPass())
        container.add_compiler_pass(RegisterEventListenersAndSubscribersPass())
