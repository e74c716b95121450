"""Compiler pass protocol and the container's own structural passes.

A compiler pass is a discrete transformation of the service graph. Passes
receive the container and a fresh TagIndex snapshot, and run in the exact
order they were added; there is no hidden priority system. A pass must
contribute nothing when the tags or definitions it looks for are absent.

Classes:
    CompilerPass: Base class for all passes
    ResolveChildDefinitionsPass: Flattens ChildDefinition into Definition
    CheckAliasesPass: Verifies every alias resolves to a definition
    CheckReferencesPass: Rejects references to abstract definitions
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterator

from loguru import logger

from .definition import (
    ChildDefinition,
    Definition,
    InvalidBehavior,
    MethodCall,
    Reference,
    ServiceLocatorArgument,
)
from .errors import CircularReferenceError, InvalidReferenceError, ServiceNotFoundError
from .registry import TagIndex

if TYPE_CHECKING:
    from .container import ContainerBuilder


class CompilerPass(ABC):
    """A transformation applied to the service graph during compile()."""

    @abstractmethod
    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        """Rewrite the graph in place.

        Args:
            container: The container being compiled
            tags: Snapshot of the tagged services taken just before this pass
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def resolve_child_definition(
    container: ContainerBuilder, service_id: str, definition: Definition
) -> Definition:
    """Merge a child definition with its parent chain into a plain Definition."""
    if not isinstance(definition, ChildDefinition):
        return definition

    chain = [service_id]
    current: Definition = definition
    lineage: list[ChildDefinition] = []

    while isinstance(current, ChildDefinition):
        lineage.append(current)
        parent_id = current.parent
        if parent_id in chain:
            raise CircularReferenceError([*chain, parent_id])
        chain.append(parent_id)
        if not container.has_definition(parent_id):
            raise ServiceNotFoundError(parent_id, source_id=service_id)
        current = container.get_definition(parent_id)

    resolved = Definition(
        cls=current.cls,
        arguments=list(current.arguments),
        method_calls=list(current.method_calls),
        public=current.public,
        shared=current.shared,
        factory=current.factory,
        configurator=current.configurator,
        metadata=dict(current.metadata),
    )

    for child in reversed(lineage):
        if child.cls is not None:
            resolved.cls = child.cls
        if child.factory is not None:
            resolved.factory = child.factory
        if child.configurator is not None:
            resolved.configurator = child.configurator
        resolved.arguments.extend(child.arguments)
        for index, value in child.replaced_arguments.items():
            resolved.set_argument(index, value)
        resolved.method_calls.extend(child.method_calls)
        resolved.metadata.update(child.metadata)
        resolved.public = child.public
        resolved.shared = child.shared

    # Only the outermost child decides these
    resolved.abstract = definition.abstract
    resolved.tags = {name: list(attrs) for name, attrs in definition.tags.items()}
    return resolved


class ResolveChildDefinitionsPass(CompilerPass):
    """Replace every ChildDefinition by its flattened equivalent."""

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        resolved = {}
        for service_id, definition in container.definitions.items():
            if isinstance(definition, ChildDefinition):
                resolved[service_id] = resolve_child_definition(container, service_id, definition)

        for service_id, definition in resolved.items():
            container.definitions[service_id] = definition

        if resolved:
            logger.debug(f"Resolved {len(resolved)} child definitions")


class CheckAliasesPass(CompilerPass):
    """Resolve every alias once so cycles and dangling aliases fail early."""

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        for alias in list(container.aliases):
            target = container.resolve_alias(alias)
            if not container.has_definition(target):
                raise ServiceNotFoundError(target, source_id=alias)


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested inside an argument value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, ServiceLocatorArgument):
        yield from value.values.values()
    elif isinstance(value, MethodCall):
        yield from iter_references(value.arguments)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


class CheckReferencesPass(CompilerPass):
    """Abstract definitions are templates and can never be depended upon."""

    def process(self, container: ContainerBuilder, tags: TagIndex) -> None:
        for service_id, definition in container.definitions.items():
            if definition.abstract:
                continue

            slots = [definition.arguments, definition.method_calls, definition.factory, definition.configurator]
            for reference in iter_references(slots):
                if reference.invalid_behavior is not InvalidBehavior.EXCEPTION:
                    continue
                if not container.has(reference.id):
                    continue
                target_id = container.resolve_alias(reference.id)
                target = container.definitions.get(target_id)
                if target is not None and target.abstract:
                    raise InvalidReferenceError(
                        f'The service "{service_id}" has a reference to the abstract '
                        f'service "{target_id}".',
                        service_id=service_id,
                    )
