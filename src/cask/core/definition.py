"""Service definitions and the values that can appear inside them.

A definition describes how a service would be constructed: its class or
factory, ordered constructor arguments, ordered method calls and tags. Nothing
here instantiates anything; definitions are plain, mutable records that
extensions and compiler passes edit before the container is compiled.

Classes:
    Reference: Pointer from an argument slot to another service id
    Alias: Name that indirects to another service id
    ServiceLocatorArgument: Id-keyed map of references resolved on demand
    MethodCall: One ``(method, arguments)`` pair
    Definition: Complete description of one service
    ChildDefinition: Definition inheriting from an abstract template

Example:
    >>> definition = Definition("myapp.filters:TableFilter", ["table1"])
    >>> definition.add_tag("cask.dbal.schema_filter", {"connection": "default"})
    >>> definition.add_method_call("set_logger", [Reference("logger")])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple

from .errors import CaskError


class InvalidBehavior(Enum):
    """What a reference does when its target is missing."""

    EXCEPTION = "exception"
    NULL = "null"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Reference:
    """Typed pointer to another service by id or alias."""

    id: str
    invalid_behavior: InvalidBehavior = InvalidBehavior.EXCEPTION

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class Alias:
    """An alternative name for a service.

    Aliases are resolved transitively; a cycle is a configuration error.
    """

    id: str
    public: bool = False

    def __str__(self) -> str:
        return self.id


@dataclass
class ServiceLocatorArgument:
    """Id-keyed references that are only instantiated when requested."""

    values: dict[str, Reference] = field(default_factory=dict)


class MethodCall(NamedTuple):
    """A method to invoke on the service after construction."""

    method: str
    arguments: list


@dataclass(eq=False)
class Definition:
    """Complete description of how to build one service.

    Attributes:
        cls: Python type, import path (``module:Qualname``) or class parameter
        arguments: Ordered constructor arguments
        method_calls: Ordered calls applied after construction
        tags: Tag name to list of attribute mappings, in registration order
        public: Whether the service may be fetched directly
        abstract: Template only, never instantiated or referenced
        shared: One instance per container
        factory: ``(Reference | class, method)`` or a callable building the service
        configurator: ``(Reference, method)`` called with the built service
        metadata: Arbitrary bookkeeping
    """

    cls: type | str | None = None
    arguments: list[Any] = field(default_factory=list)
    method_calls: list[MethodCall] = field(default_factory=list)
    tags: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    public: bool = False
    abstract: bool = False
    shared: bool = True
    factory: Any = None
    configurator: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def set_class(self, cls: type | str | None) -> Definition:
        self.cls = cls
        return self

    def set_arguments(self, arguments: list[Any]) -> Definition:
        self.arguments = list(arguments)
        return self

    def add_argument(self, value: Any) -> Definition:
        self.arguments.append(value)
        return self

    def get_argument(self, index: int) -> Any:
        if index < 0 or index >= len(self.arguments):
            raise IndexError(
                f"The index {index} is not in the range [0, {len(self.arguments) - 1}]."
            )
        return self.arguments[index]

    def replace_argument(self, index: int, value: Any) -> Definition:
        """Replace an existing positional argument."""
        if not self.arguments:
            raise IndexError("Cannot replace arguments if none have been configured yet.")
        if index < 0 or index >= len(self.arguments):
            raise IndexError(
                f"The index {index} is not in the range [0, {len(self.arguments) - 1}]."
            )
        self.arguments[index] = value
        return self

    def set_argument(self, index: int, value: Any) -> Definition:
        """Set an argument, growing the list with None placeholders if needed."""
        while len(self.arguments) <= index:
            self.arguments.append(None)
        self.arguments[index] = value
        return self

    def set_public(self, public: bool = True) -> Definition:
        self.public = public
        return self

    def set_abstract(self, abstract: bool = True) -> Definition:
        self.abstract = abstract
        return self

    def set_factory(self, factory: Any) -> Definition:
        self.factory = factory
        return self

    def set_configurator(self, configurator: Any) -> Definition:
        self.configurator = configurator
        return self

    # Method calls

    def add_method_call(
        self, method: str, arguments: list[Any] | None = None, *, unique: bool = False
    ) -> Definition:
        """Append a method call.

        With ``unique=True`` an identical call already present is not added
        again, which keeps compiler passes safe to re-run.
        """
        if not method:
            raise CaskError("Method name cannot be empty.")

        call = MethodCall(method, list(arguments or []))
        if unique and call in self.method_calls:
            return self

        self.method_calls.append(call)
        return self

    def remove_method_call(self, method: str) -> Definition:
        self.method_calls = [call for call in self.method_calls if call.method != method]
        return self

    def has_method_call(self, method: str) -> bool:
        return any(call.method == method for call in self.method_calls)

    def get_method_calls(self, method: str | None = None) -> list[MethodCall]:
        if method is None:
            return list(self.method_calls)
        return [call for call in self.method_calls if call.method == method]

    # Tags

    def add_tag(self, name: str, attributes: dict[str, Any] | None = None) -> Definition:
        self.tags.setdefault(name, []).append(dict(attributes or {}))
        return self

    def has_tag(self, name: str) -> bool:
        return name in self.tags

    def get_tag(self, name: str) -> list[dict[str, Any]]:
        return self.tags.get(name, [])

    def clear_tag(self, name: str) -> Definition:
        self.tags.pop(name, None)
        return self

    def __repr__(self) -> str:
        cls = self.cls if isinstance(self.cls, str) or self.cls is None else self.cls.__qualname__
        return f"{self.__class__.__name__}(cls={cls!r}, abstract={self.abstract})"


@dataclass(eq=False)
class ChildDefinition(Definition):
    """A definition that inherits from a parent template.

    The parent's arguments come first and the child's own arguments are
    appended; ``replace_argument`` overrides an argument of that combined list by index.
    Method calls are appended after the parent's. Tags are never inherited.
    """

    parent: str = ""
    replaced_arguments: dict[int, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.parent:
            raise CaskError("A child definition needs a parent service id.")

    def replace_argument(self, index: int, value: Any) -> ChildDefinition:
        self.replaced_arguments[index] = value
        return self

    set_argument = replace_argument

    def get_argument(self, index: int) -> Any:
        """Return a replaced argument.

        Indexes address the flattened argument list (parent arguments
        first), which only ``resolve_child_definition`` can build; any other
        index raises IndexError.
        """
        if index in self.replaced_arguments:
            return self.replaced_arguments[index]
        raise IndexError(
            f"Argument {index} of a child of \"{self.parent}\" depends on its parent; "
            f"resolve the definition first."
        )

    def __repr__(self) -> str:
        return f"ChildDefinition(parent={self.parent!r})"
