"""Compiler passes contributed by the ORM bundle, in the order they must run."""

from cask.bundle.passes.entity_listener import EntityListenerPass
from cask.bundle.passes.event_listeners import RegisterEventListenersAndSubscribersPass
from cask.bundle.passes.schema_filter import SchemaFilterPass, WellKnownSchemaFilterPass

__all__ = [
    "EntityListenerPass",
    "RegisterEventListenersAndSubscribersPass",
    "SchemaFilterPass",
    "WellKnownSchemaFilterPass",
]
