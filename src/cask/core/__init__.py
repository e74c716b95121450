"""Service graph primitives: definitions, container, passes and loaders.

Key Components:
    ContainerBuilder: Stores definitions, aliases and parameters; compiles
    Definition / ChildDefinition: Declarative service descriptions
    Reference / Alias: Edges of the service graph
    TagIndex: Tag-based discovery of services for compiler passes
    CompilerPass: Ordered graph transformations
    YamlFileLoader: Reads YAML configuration into a container
"""

from cask.core.container import SERVICE_CONTAINER, ContainerBuilder, ServiceLocator, load_class
from cask.core.definition import (
    Alias,
    ChildDefinition,
    Definition,
    InvalidBehavior,
    MethodCall,
    Reference,
    ServiceLocatorArgument,
)
from cask.core.errors import (
    CapabilityError,
    CaskError,
    CircularReferenceError,
    FrozenContainerError,
    InvalidConfigurationError,
    InvalidReferenceError,
    ParameterNotFoundError,
    SchemaError,
    ServiceNotFoundError,
)
from cask.core.extension import Extension
from cask.core.loader import YamlFileLoader
from cask.core.passes import CompilerPass
from cask.core.registry import TaggedService, TagIndex

__all__ = [
    "Alias",
    "CapabilityError",
    "CaskError",
    "ChildDefinition",
    "CircularReferenceError",
    "CompilerPass",
    "ContainerBuilder",
    "Definition",
    "Extension",
    "FrozenContainerError",
    "InvalidBehavior",
    "InvalidConfigurationError",
    "InvalidReferenceError",
    "MethodCall",
    "ParameterNotFoundError",
    "Reference",
    "SERVICE_CONTAINER",
    "SchemaError",
    "ServiceLocator",
    "ServiceLocatorArgument",
    "ServiceNotFoundError",
    "TagIndex",
    "TaggedService",
    "YamlFileLoader",
    "load_class",
]
