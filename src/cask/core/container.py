"""Service graph container.

The ContainerBuilder stores service definitions, aliases and parameters,
collects extension configuration and runs compiler passes in the order they
were added. Once compiled the graph is frozen and can be inspected or, for
services whose classes are importable, instantiated with ``get()``.

Example:
    >>> container = ContainerBuilder({"kernel.debug": False})
    >>> container.register("table_filter", TableFilter).set_arguments(["table1"])
    >>> container.set_alias("filter", "table_filter")
    >>> container.add_compiler_pass(MyPass())
    >>> container.compile()
    >>> container["filter"]("table2")
    True
"""

from __future__ import annotations

import importlib
import re
from collections import defaultdict
from functools import partial
from typing import Any, Callable, Iterator

from loguru import logger

from .definition import (
    Alias,
    Definition,
    InvalidBehavior,
    Reference,
    ServiceLocatorArgument,
)
from .errors import (
    CaskError,
    CircularReferenceError,
    FrozenContainerError,
    InvalidConfigurationError,
    InvalidReferenceError,
    ParameterNotFoundError,
    ServiceNotFoundError,
)
from .extension import Extension
from .passes import (
    CheckAliasesPass,
    CheckReferencesPass,
    CompilerPass,
    ResolveChildDefinitionsPass,
    resolve_child_definition,
)
from .registry import TagIndex

SERVICE_CONTAINER = "service_container"

_PARAMETER = re.compile(r"%%|%([^%\s]+)%")
_WHOLE_PARAMETER = re.compile(r"^%([^%\s]+)%$")


class ServiceLocator:
    """Read-only, lazily resolving view over a fixed set of services.

    A ``ServiceLocatorArgument`` resolves to the id-keyed factories this
    class wraps; nothing is instantiated until ``get()`` is called.
    """

    def __init__(self, factories: dict[str, Callable[[], Any]]):
        self._factories = dict(factories)

    def has(self, service_id: str) -> bool:
        return service_id in self._factories

    def get(self, service_id: str) -> Any:
        if service_id not in self._factories:
            raise ServiceNotFoundError(service_id)
        return self._factories[service_id]()

    def keys(self):
        return self._factories.keys()

    __contains__ = has
    __getitem__ = get


def load_class(spec: type | str) -> type | Callable:
    """Import a class from ``module:Qualname`` or ``module.Name``."""
    if not isinstance(spec, str):
        return spec

    if ":" in spec:
        module_name, _, qualname = spec.partition(":")
    else:
        module_name, _, qualname = spec.rpartition(".")
    if not module_name or not qualname:
        raise ImportError(f"'{spec}' is not an importable class path")

    target: Any = importlib.import_module(module_name)
    for attribute in qualname.split("."):
        target = getattr(target, attribute)
    return target


class ContainerBuilder:
    """Mutable service graph that compiles into a frozen one.

    Attributes:
        definitions: Service id to definition, in registration order
        aliases: Alias name to Alias
        parameters: Parameter name to value
    """

    def __init__(self, parameters: dict[str, Any] | None = None):
        self.definitions: dict[str, Definition] = {}
        self.aliases: dict[str, Alias] = {}
        self.parameters: dict[str, Any] = dict(parameters or {})

        self._extensions: dict[str, Extension] = {}
        self._extension_configs: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._passes: list[CompilerPass] = []
        self._instances: dict[str, Any] = {}
        self._loading: list[str] = []
        self._compiled = False

    # Definitions

    def register(self, service_id: str, cls: type | str | None = None) -> Definition:
        """Register a new definition and return it for chaining."""
        return self.set_definition(service_id, Definition(cls))

    def set_definition(self, service_id: str, definition: Definition) -> Definition:
        self._assert_not_frozen(f'set the definition "{service_id}"')
        if not service_id or service_id != service_id.strip():
            raise InvalidConfigurationError(f'Invalid service id: "{service_id}".')

        self.aliases.pop(service_id, None)
        self.definitions[service_id] = definition
        return definition

    def has_definition(self, service_id: str) -> bool:
        return service_id in self.definitions

    def get_definition(self, service_id: str) -> Definition:
        try:
            return self.definitions[service_id]
        except KeyError:
            raise ServiceNotFoundError(service_id) from None

    def find_definition(self, service_id: str) -> Definition:
        """Get a definition, following aliases."""
        return self.get_definition(self.resolve_alias(service_id))

    def remove_definition(self, service_id: str) -> None:
        self._assert_not_frozen(f'remove the definition "{service_id}"')
        self.definitions.pop(service_id, None)

    # Aliases

    def set_alias(self, alias: str, target: str | Alias) -> Alias:
        self._assert_not_frozen(f'set the alias "{alias}"')
        if isinstance(target, str):
            target = Alias(target)
        if alias == target.id:
            raise InvalidConfigurationError(
                f'An alias cannot reference itself, got a circular reference on "{alias}".',
                service_id=alias,
            )

        self.definitions.pop(alias, None)
        self.aliases[alias] = target
        return target

    def has_alias(self, alias: str) -> bool:
        return alias in self.aliases

    def get_alias(self, alias: str) -> Alias:
        try:
            return self.aliases[alias]
        except KeyError:
            raise ServiceNotFoundError(alias) from None

    def resolve_alias(self, service_id: str) -> str:
        """Follow aliases transitively to the definition id they name."""
        seen = [service_id]
        while service_id in self.aliases:
            service_id = self.aliases[service_id].id
            if service_id in seen:
                raise CircularReferenceError([*seen, service_id])
            seen.append(service_id)
        return service_id

    def has(self, service_id: str) -> bool:
        return (
            service_id == SERVICE_CONTAINER
            or service_id in self.definitions
            or service_id in self.aliases
        )

    # Parameters

    def set_parameter(self, name: str, value: Any) -> None:
        self._assert_not_frozen(f'set the parameter "{name}"')
        self.parameters[name] = value

    def has_parameter(self, name: str) -> bool:
        return name in self.parameters

    def get_parameter(self, name: str) -> Any:
        try:
            return self.parameters[name]
        except KeyError:
            raise ParameterNotFoundError(name) from None

    def resolve_value(self, value: Any, _resolving: tuple[str, ...] = ()) -> Any:
        """Replace ``%name%`` placeholders by parameter values.

        A string that is a single placeholder takes the parameter's value as
        is (lists, dicts, booleans survive); embedded placeholders are
        rendered as text. ``%%`` is a literal percent sign.
        """
        if isinstance(value, dict):
            return {
                self.resolve_value(key, _resolving): self.resolve_value(item, _resolving)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [self.resolve_value(item, _resolving) for item in value]
        if not isinstance(value, str):
            return value

        whole = _WHOLE_PARAMETER.match(value)
        if whole:
            return self._resolve_parameter(whole.group(1), _resolving)

        def substitute(match: re.Match) -> str:
            if match.group(0) == "%%":
                return "%"
            resolved = self._resolve_parameter(match.group(1), _resolving)
            if isinstance(resolved, (dict, list)):
                raise InvalidConfigurationError(
                    f'A string value must be composed of strings and/or numbers, but found '
                    f'parameter "{match.group(1)}" of type {type(resolved).__name__} '
                    f'inside string value "{value}".'
                )
            return str(resolved)

        return _PARAMETER.sub(substitute, value)

    def _resolve_parameter(self, name: str, resolving: tuple[str, ...]) -> Any:
        if name in resolving:
            raise CircularReferenceError([*resolving, name])
        return self.resolve_value(self.get_parameter(name), (*resolving, name))

    # Tags

    def tag_index(self) -> TagIndex:
        return TagIndex.from_definitions(self.definitions)

    def find_tagged_service_ids(self, tag: str) -> dict[str, list[dict[str, Any]]]:
        return {
            service_id: [dict(attributes) for attributes in occurrences]
            for service_id, occurrences in self.tag_index().service_ids(tag).items()
        }

    # Extensions

    def register_extension(self, extension: Extension) -> None:
        if not extension.alias:
            raise CaskError(f"{extension!r} has no alias")
        self._extensions[extension.alias] = extension

    def has_extension(self, alias: str) -> bool:
        return alias in self._extensions

    def get_extension(self, alias: str) -> Extension:
        try:
            return self._extensions[alias]
        except KeyError:
            raise InvalidConfigurationError(
                f'There is no extension able to load the configuration for "{alias}". '
                f'Looked for namespace "{alias}", found '
                f'{", ".join(sorted(self._extensions)) or "none"}.'
            ) from None

    def load_from_extension(self, alias: str, config: dict[str, Any] | None) -> None:
        """Queue a configuration block for an extension."""
        self._assert_not_frozen(f'load configuration for "{alias}"')
        self.get_extension(alias)
        self._extension_configs[alias].append(config or {})

    def get_extension_config(self, alias: str) -> list[dict[str, Any]]:
        return list(self._extension_configs.get(alias, ()))

    # Compilation

    def add_compiler_pass(self, compiler_pass: CompilerPass) -> None:
        self._assert_not_frozen("add a compiler pass")
        self._passes.append(compiler_pass)

    @property
    def compiler_passes(self) -> list[CompilerPass]:
        return list(self._passes)

    @property
    def is_compiled(self) -> bool:
        return self._compiled

    def compile(self) -> None:
        """Load extensions, run passes in order, then validate and freeze."""
        if self._compiled:
            raise FrozenContainerError("The container has already been compiled.")

        for alias, extension in self._extensions.items():
            configs = self._extension_configs.get(alias)
            if configs:
                logger.debug(f"Loading extension '{alias}' with {len(configs)} config block(s)")
                extension.load(configs, self)

        structural = [ResolveChildDefinitionsPass(), CheckAliasesPass(), CheckReferencesPass()]
        for compiler_pass in [*self._passes, *structural]:
            logger.debug(f"Running {compiler_pass!r}")
            compiler_pass.process(self, self.tag_index())

        self.parameters = {
            name: self.resolve_value(value, (name,)) for name, value in self.parameters.items()
        }
        self._compiled = True
        logger.debug(
            f"Compiled container: {len(self.definitions)} definitions, {len(self.aliases)} aliases"
        )

    def _assert_not_frozen(self, action: str) -> None:
        if self._compiled:
            raise FrozenContainerError(f"Unable to {action}: the container is compiled.")

    # Instantiation

    def get(
        self, service_id: str, invalid_behavior: InvalidBehavior = InvalidBehavior.EXCEPTION
    ) -> Any:
        """Build (or return the shared instance of) a service."""
        if service_id == SERVICE_CONTAINER:
            return self

        if not self.has(service_id):
            if invalid_behavior is InvalidBehavior.EXCEPTION:
                raise ServiceNotFoundError(service_id)
            return None

        service_id = self.resolve_alias(service_id)
        if service_id in self._instances:
            return self._instances[service_id]

        if service_id in self._loading:
            raise CircularReferenceError([*self._loading, service_id])

        definition = resolve_child_definition(self, service_id, self.get_definition(service_id))
        if definition.abstract:
            raise InvalidReferenceError(
                f'The service "{service_id}" is abstract and cannot be instantiated.',
                service_id=service_id,
            )

        self._loading.append(service_id)
        try:
            service = self._create_service(service_id, definition)
        finally:
            self._loading.remove(service_id)

        return service

    def _create_service(self, service_id: str, definition: Definition) -> Any:
        arguments = self._resolve_services(definition.arguments, service_id)

        if definition.factory is not None:
            builder = self._resolve_callable(definition.factory, service_id)
        else:
            if definition.cls is None:
                raise InvalidConfigurationError(
                    f'The definition for "{service_id}" has no class.', service_id=service_id
                )
            builder = self._load(definition.cls, service_id)

        service = builder(*arguments)
        if definition.shared:
            self._instances[service_id] = service

        for call in definition.method_calls:
            getattr(service, call.method)(*self._resolve_services(call.arguments, service_id))

        if definition.configurator is not None:
            self._resolve_callable(definition.configurator, service_id)(service)

        logger.debug(f"Instantiated service '{service_id}'")
        return service

    def _load(self, cls: type | str, service_id: str) -> Any:
        cls = self.resolve_value(cls)
        try:
            return load_class(cls)
        except (ImportError, AttributeError) as e:
            raise InvalidConfigurationError(
                f'Class "{cls}" for service "{service_id}" cannot be loaded: {e}',
                service_id=service_id,
            ) from e

    def _resolve_callable(self, spec: Any, service_id: str) -> Callable:
        if callable(spec) and not isinstance(spec, (list, tuple)):
            return spec
        target, method = spec
        if isinstance(target, Reference):
            target = self.get(target.id)
        else:
            target = self._load(target, service_id)
        return getattr(target, method)

    def _resolve_services(self, value: Any, service_id: str) -> Any:
        if isinstance(value, Reference):
            if not self.has(value.id):
                if value.invalid_behavior is InvalidBehavior.EXCEPTION:
                    raise ServiceNotFoundError(value.id, source_id=service_id)
                return None
            return self.get(value.id)
        if isinstance(value, ServiceLocatorArgument):
            return {
                key: partial(self.get, reference.id, reference.invalid_behavior)
                for key, reference in value.values.items()
            }
        if isinstance(value, dict):
            return {
                self.resolve_value(key): self._resolve_services(item, service_id)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self._resolve_services(item, service_id) for item in value]
        return self.resolve_value(value)

    # Dict-like access

    def __getitem__(self, service_id: str) -> Any:
        return self.get(service_id)

    def __contains__(self, service_id: str) -> bool:
        return self.has(service_id)

    def __iter__(self) -> Iterator[str]:
        return iter([*self.definitions, *self.aliases])

    def __len__(self) -> int:
        return len(self.definitions) + len(self.aliases)
