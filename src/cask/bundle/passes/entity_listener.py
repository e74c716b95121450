"""Wire ``cask.orm.entity_listener`` services into their entity manager.

Tag attributes:
    entity_manager: Manager name (the default manager when absent)
    entity: Entity class the listener is attached to
    event: Lifecycle event, required together with ``entity``
    method: Listener method; when absent the call carries no method, except
        for callable listeners without a method named after the event, which
        get ``__call__``
    lazy: Register by service id instead of by instance
    priority: Higher priorities are registered first

Each listener is registered on the manager's entity listener resolver.
Calls attaching listeners to entities are grouped per entity, entities in
the order they first appear, listeners in priority order within each. Which
registration the resolver supports is decided from its class before anything
is instantiated (see ``cask.orm.listeners.resolver_capabilities``).
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from cask.core import (
    CapabilityError,
    CompilerPass,
    ContainerBuilder,
    Definition,
    InvalidConfigurationError,
    InvalidReferenceError,
    Reference,
    ServiceLocatorArgument,
    TaggedService,
    TagIndex,
    load_class,
)
from cask.core.passes import resolve_child_definition
from cask.orm.listeners import ResolverCapability, resolver_capabilities

from ..orm import entity_manager_id

ENTITY_LISTENER_TAG = "cask.orm.entity_listener"
SERVICE_LOCATOR_CLASS = "cask.core.container:ServiceLocator"


class EntityListenerPass(CompilerPass):
    """Register tagged entity listeners on their manager's resolver."""

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        # manager name -> entity -> add_entity_listener arguments, in first-seen order
        attachments: dict[str, dict[str, list[list[Any]]]] = {}

        for tagged in tags.find_sorted(ENTITY_LISTENER_TAG, include_abstract=True):
            attributes = tagged.attributes
            em_name = attributes.get("entity_manager") or container.parameters.get(
                "cask.default_entity_manager"
            )
            if not em_name or not container.has(entity_manager_id(em_name)):
                logger.warning(
                    f"Skipping entity listener '{tagged.service_id}': "
                    f"no entity manager '{em_name}' is configured"
                )
                continue

            if tagged.abstract:
                raise InvalidReferenceError(
                    f'The service "{tagged.service_id}" must not be abstract.',
                    service_id=tagged.service_id,
                )

            resolver_id = f"cask.orm.{em_name}_entity_listener_resolver"
            resolver = container.find_definition(resolver_id)
            resolver.set_public()
            capabilities = self._capabilities(container, resolver_id)

            if not capabilities & ResolverCapability.REGISTER:
                raise CapabilityError(
                    f'The entity listener resolver "{resolver_id}" must implement '
                    f'"EntityListenerResolver".',
                    service_id=resolver_id,
                    capability="EntityListenerResolver",
                )

            lazy = attributes.get("lazy")
            if lazy and not capabilities & ResolverCapability.REGISTER_SERVICE:
                raise CapabilityError(
                    f'Lazy-loaded entity listeners can only be used with a resolver implementing '
                    f'"EntityListenerServiceResolver", "{resolver_id}" does not.',
                    service_id=resolver_id,
                    capability="EntityListenerServiceResolver",
                )
            if lazy is None:
                lazy = capabilities == ResolverCapability.LAZY

            listener_class = self._listener_class(container, tagged.service_id)
            if lazy:
                self._attach_lazy(container, resolver_id, resolver, tagged.service_id, listener_class)
            else:
                resolver.add_method_call("register", [Reference(tagged.service_id)], unique=True)

            if attributes.get("entity"):
                attachments.setdefault(em_name, {}).setdefault(attributes["entity"], []).append(
                    self._entity_listener_arguments(tagged, listener_class)
                )

            logger.debug(
                f"Entity listener '{tagged.service_id}' registered on '{resolver_id}'"
                f"{' (lazy)' if lazy else ''}"
            )

        for em_name, entities in attachments.items():
            self._attach_grouped(container, em_name, entities)

    @staticmethod
    def _attach_grouped(
        container: ContainerBuilder, em_name: str, entities: dict[str, list[list[Any]]]
    ) -> None:
        """Rewrite the attach calls so each entity's listeners are contiguous.

        Calls already present (declared in configuration or added by an
        earlier run) keep their place ahead of the tagged ones.
        """
        attach = container.find_definition(f"cask.orm.{em_name}_listeners.attach_entity_listeners")
        grouped: dict[str, list[list[Any]]] = {}
        for call in attach.get_method_calls("add_entity_listener"):
            grouped.setdefault(call.arguments[0], []).append(call.arguments)
        for entity, calls in entities.items():
            grouped.setdefault(entity, []).extend(calls)

        attach.remove_method_call("add_entity_listener")
        for calls in grouped.values():
            for arguments in calls:
                attach.add_method_call("add_entity_listener", arguments, unique=True)

    @staticmethod
    def _capabilities(container: ContainerBuilder, resolver_id: str) -> ResolverCapability:
        target_id = container.resolve_alias(resolver_id)
        definition = resolve_child_definition(container, target_id, container.get_definition(target_id))
        cls = container.resolve_value(definition.cls)
        try:
            return resolver_capabilities(load_class(cls))
        except (ImportError, AttributeError) as e:
            raise InvalidReferenceError(
                f'The class "{cls}" of the entity listener resolver "{resolver_id}" cannot be '
                f"loaded: {e}",
                service_id=resolver_id,
            ) from e

    @staticmethod
    def _listener_class(container: ContainerBuilder, service_id: str) -> Any:
        definition = resolve_child_definition(
            container, service_id, container.get_definition(service_id)
        )
        if definition.cls is None:
            raise InvalidConfigurationError(
                f'The entity listener "{service_id}" must have a class.', service_id=service_id
            )
        return container.resolve_value(definition.cls)

    @staticmethod
    def _attach_lazy(
        container: ContainerBuilder,
        resolver_id: str,
        resolver: Definition,
        service_id: str,
        listener_class: Any,
    ) -> None:
        resolver.add_method_call("register_service", [listener_class, service_id], unique=True)

        if not container.has_definition(resolver_id):
            # Custom resolvers fetch listeners from the container themselves
            container.find_definition(service_id).set_public()
            return

        locator_id = f"{resolver_id}.locator"
        if not container.has_definition(locator_id):
            container.register(locator_id, SERVICE_LOCATOR_CLASS).set_arguments(
                [ServiceLocatorArgument()]
            )
        container.get_definition(locator_id).arguments[0].values[service_id] = Reference(service_id)
        resolver.set_argument(0, Reference(locator_id))

    @staticmethod
    def _entity_listener_arguments(tagged: TaggedService, listener_class: Any) -> list[Any]:
        attributes = tagged.attributes
        event = attributes.get("event")
        if not event:
            raise InvalidConfigurationError(
                f'The entity listener "{tagged.service_id}" must define an "event" attribute '
                f'when "entity" is set.',
                service_id=tagged.service_id,
            )

        arguments = [attributes["entity"], listener_class, event]
        method = attributes.get("method") or _invokable_method(listener_class, event)
        if method:
            arguments.append(method)
        return arguments


def _invokable_method(listener_class: Any, event: str) -> str | None:
    """Use ``__call__`` for callable listeners lacking a method named after the event."""
    try:
        cls = load_class(listener_class)
    except (ImportError, AttributeError):
        return None
    if not hasattr(cls, event) and "__call__" in dir(cls):
        return "__call__"
    return None
