"""ORM-side objects the entity manager definitions are built from."""

from cask.orm.listeners import (
    ContainerEntityListenerResolver,
    EntityListenerResolver,
    EntityListenerServiceResolver,
    ResolverCapability,
    resolver_capabilities,
)

__all__ = [
    "ContainerEntityListenerResolver",
    "EntityListenerResolver",
    "EntityListenerServiceResolver",
    "ResolverCapability",
    "resolver_capabilities",
]
