"""Entity listener resolvers and the capabilities compiler passes check for.

A resolver hands out listener instances by listener class. Two capabilities
exist and are checked structurally, before anything is instantiated:

- ``REGISTER``: the base resolver API (``resolve``, ``register``, ``clear``)
- ``REGISTER_SERVICE``: lazy registration by service id (``register_service``)

A resolver that supports lazily loaded listeners needs both.
"""

from __future__ import annotations

from enum import Flag
from typing import Any

from typing_extensions import Protocol, runtime_checkable


@runtime_checkable
class EntityListenerResolver(Protocol):
    """Resolves listener instances from listener class names."""

    def clear(self, class_name: Any = None) -> None: ...

    def resolve(self, class_name: Any) -> Any: ...

    def register(self, listener: Any) -> None: ...


@runtime_checkable
class EntityListenerServiceResolver(Protocol):
    """Registers listeners by service id so they are built on first use."""

    def register_service(self, class_name: Any, service_id: str) -> None: ...


class ResolverCapability(Flag):
    NONE = 0
    REGISTER = 1
    REGISTER_SERVICE = 2
    LAZY = REGISTER | REGISTER_SERVICE


def resolver_capabilities(cls: type) -> ResolverCapability:
    """Compute what a resolver class can do from the methods it exposes."""
    capabilities = ResolverCapability.NONE
    if isinstance(cls, type):
        if issubclass(cls, EntityListenerResolver):
            capabilities |= ResolverCapability.REGISTER
        if issubclass(cls, EntityListenerServiceResolver):
            capabilities |= ResolverCapability.REGISTER_SERVICE
    return capabilities


def class_key(class_name: Any) -> str:
    """Normalize a type, ``module:Qualname`` or dotted path to one lookup key."""
    if isinstance(class_name, type):
        return f"{class_name.__module__}.{class_name.__qualname__}"
    return str(class_name).replace(":", ".")


class ContainerEntityListenerResolver:
    """Default resolver: eager instances plus lazily located services."""

    def __init__(self, container: Any):
        self._container = container
        self._instances: dict[str, Any] = {}
        self._service_ids: dict[str, str] = {}

    def clear(self, class_name: Any = None) -> None:
        if class_name is None:
            self._instances = {}
            return
        self._instances.pop(class_key(class_name), None)

    def register(self, listener: Any) -> None:
        self._instances[class_key(type(listener))] = listener

    def register_service(self, class_name: Any, service_id: str) -> None:
        self._service_ids[class_key(class_name)] = service_id

    def resolve(self, class_name: Any) -> Any:
        key = class_key(class_name)
        if key not in self._instances:
            if key in self._service_ids:
                self._instances[key] = self._container.get(self._service_ids[key])
            elif isinstance(class_name, type):
                self._instances[key] = class_name()
            else:
                raise LookupError(f'No entity listener registered for "{key}".')
        return self._instances[key]
