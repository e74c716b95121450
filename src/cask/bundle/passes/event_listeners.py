"""Register tagged event listeners and subscribers on connection event managers."""

from __future__ import annotations

from loguru import logger

from cask.core import (
    CompilerPass,
    ContainerBuilder,
    InvalidConfigurationError,
    InvalidReferenceError,
    Reference,
    TaggedService,
    TagIndex,
)


class RegisterEventListenersAndSubscribersPass(CompilerPass):
    """Add ``{prefix}.event_listener`` / ``{prefix}.event_subscriber`` services
    to the event manager of each connection they apply to.

    A tag without a ``connection`` attribute applies to every connection.
    Within one connection, services are added by descending ``priority``.

    Args:
        connections_parameter: Parameter mapping connection names to service ids
        manager_template: Event manager id, formatted with the connection name
        tag_prefix: Prefix of the listener and subscriber tags
    """

    def __init__(
        self,
        connections_parameter: str = "cask.connections",
        manager_template: str = "cask.dbal.{}_connection.event_manager",
        tag_prefix: str = "cask",
    ):
        self.connections_parameter = connections_parameter
        self.manager_template = manager_template
        self.tag_prefix = tag_prefix

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        if not container.has_parameter(self.connections_parameter):
            return
        connections = list(container.get_parameter(self.connections_parameter) or {})

        for tagged in tags.find_sorted(f"{self.tag_prefix}.event_subscriber"):
            for connection in self._connections(tagged, connections):
                self._manager(container, connection).add_method_call(
                    "add_event_subscriber", [Reference(tagged.service_id)], unique=True
                )

        for tagged in tags.find_sorted(f"{self.tag_prefix}.event_listener"):
            event = tagged.attributes.get("event")
            if not event:
                raise InvalidConfigurationError(
                    f'The event listener "{tagged.service_id}" must specify the "event" '
                    f"attribute.",
                    service_id=tagged.service_id,
                )
            for connection in self._connections(tagged, connections):
                self._manager(container, connection).add_method_call(
                    "add_event_listener", [[event], Reference(tagged.service_id)], unique=True
                )

    def _connections(self, tagged: TaggedService, connections: list[str]) -> list[str]:
        connection = tagged.attributes.get("connection")
        if connection is None:
            return connections
        if connection not in connections:
            raise InvalidReferenceError(
                f'The event manager for connection "{connection}" does not exist, '
                f'required by "{tagged.service_id}".',
                service_id=tagged.service_id,
            )
        logger.debug(f"'{tagged.service_id}' listens on connection '{connection}' only")
        return [connection]

    def _manager(self, container: ContainerBuilder, connection: str):
        return container.find_definition(self.manager_template.format(connection))
