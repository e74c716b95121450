"""Exception hierarchy for service graph compilation.

Every failure raised while building or compiling a container derives from
CaskError. Configuration failures carry the identifier of the offending
service (or configuration path) so operators can locate the misconfiguration.

Exception Hierarchy:
    CaskError: Base exception for all Cask errors
    ├── ServiceNotFoundError: Unknown service id or alias
    ├── ParameterNotFoundError: Unknown container parameter
    ├── CircularReferenceError: Alias or parent chain loops back on itself
    ├── FrozenContainerError: Mutation or recompilation after compile()
    └── InvalidConfigurationError: Configuration cannot be compiled
        ├── SchemaError: Malformed configuration tree
        ├── InvalidReferenceError: Missing or abstract service referenced
        └── CapabilityError: Service lacks a required capability

Example:
    >>> try:
    ...     container.compile()
    ... except InvalidConfigurationError as e:
    ...     print(f"Broken service: {e.service_id}")
"""

from __future__ import annotations


class CaskError(Exception):
    """Base exception for all Cask errors."""

    pass


class ServiceNotFoundError(CaskError, KeyError):
    """Raised when a service id or alias is not registered."""

    def __init__(self, service_id: str, source_id: str | None = None):
        self.service_id = service_id
        self.source_id = source_id

        message = f'You have requested a non-existent service "{service_id}".'
        if source_id:
            message = f'The service "{source_id}" has a dependency on a non-existent service "{service_id}".'

        super().__init__(message)

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class ParameterNotFoundError(CaskError, KeyError):
    """Raised when a container parameter is not defined."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f'You have requested a non-existent parameter "{key}".')

    def __str__(self) -> str:
        return self.args[0]


class CircularReferenceError(CaskError):
    """Raised when aliases or parent definitions form a cycle."""

    def __init__(self, path: list[str]):
        self.path = path
        super().__init__(f"Circular reference detected: {' -> '.join(path)}")


class FrozenContainerError(CaskError):
    """Raised when a compiled container is modified or compiled again."""

    pass


class InvalidConfigurationError(CaskError):
    """Raised when the configuration cannot be turned into a valid graph.

    This is the typed failure surfaced by extensions and compiler passes.
    """

    def __init__(self, message: str, service_id: str | None = None):
        super().__init__(message)
        self.service_id = service_id


class SchemaError(InvalidConfigurationError):
    """Raised when a configuration tree has the wrong shape.

    The path points at the offending node, e.g.
    ``cask.dbal.connections.default.port``.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class InvalidReferenceError(InvalidConfigurationError):
    """Raised when a service references something it cannot use.

    This occurs when:
    - A listener, resolver or cache driver service does not exist
    - A referenced service is abstract
    - A tag names a connection or entity manager that does not exist
    """

    pass


class CapabilityError(InvalidConfigurationError):
    """Raised when a service does not provide a required capability."""

    def __init__(self, message: str, service_id: str | None = None, capability: str | None = None):
        super().__init__(message, service_id=service_id)
        self.capability = capability
