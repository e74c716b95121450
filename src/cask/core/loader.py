"""YAML file loader for container configuration.

A configuration file may contain:

    imports:
        - { resource: defaults.yml }
    parameters:
        kernel.debug: false
    services:
        dummy_filter:
            class: myapp.filters:TableFilter
            arguments: [table1]
            tags:
                - { name: cask.dbal.schema_filter, connection: default }
        filter: "@dummy_filter"
    cask:
        dbal:
            driver: pdo_sqlite

Imports are loaded before the importing file so its own values override
them. Every other top-level key must be the alias of a registered extension.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from .container import ContainerBuilder
from .definition import Alias, ChildDefinition, Definition, InvalidBehavior, Reference
from .errors import SchemaError

_SERVICE_KEYS = {
    "class",
    "arguments",
    "calls",
    "tags",
    "public",
    "abstract",
    "shared",
    "parent",
    "factory",
    "configurator",
    "alias",
}


def parse_reference(value: Any) -> Any:
    """Turn ``@id`` strings into references, recursively."""
    if isinstance(value, str) and value.startswith("@"):
        if value.startswith("@@"):
            return value[1:]
        if value.startswith("@?"):
            return Reference(value[2:], InvalidBehavior.IGNORE)
        return Reference(value[1:])
    if isinstance(value, list):
        return [parse_reference(item) for item in value]
    if isinstance(value, dict):
        return {key: parse_reference(item) for key, item in value.items()}
    return value


class YamlFileLoader:
    """Loads YAML configuration files into a ContainerBuilder."""

    def __init__(self, container: ContainerBuilder, base_dir: str | Path | None = None):
        self.container = container
        self.base_dir = Path(base_dir) if base_dir else None
        self._loading: list[Path] = []

    def load(self, resource: str | Path) -> None:
        path = self._locate(resource)
        if path in self._loading:
            chain = " -> ".join(str(p) for p in [*self._loading, path])
            raise SchemaError(f"Circular import detected: {chain}", path=str(path))

        logger.debug(f"Loading configuration file: {path}")
        content = yaml.safe_load(path.read_text()) or {}
        if not isinstance(content, dict):
            raise SchemaError(f'The file "{path}" must contain a YAML mapping.', path=str(path))

        self._loading.append(path)
        try:
            self._parse_imports(content.pop("imports", None) or [], path)
        finally:
            self._loading.pop()

        for name, value in (content.pop("parameters", None) or {}).items():
            self.container.set_parameter(name, value)

        self._parse_services(content.pop("services", None) or {}, path)

        for namespace, config in content.items():
            self.container.load_from_extension(namespace, config)

    def _locate(self, resource: str | Path) -> Path:
        path = Path(resource)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        if not path.is_file():
            raise SchemaError(f'The file "{path}" does not exist.', path=str(path))
        return path.resolve()

    def _parse_imports(self, imports: list[Any], path: Path) -> None:
        for entry in imports:
            resource = entry["resource"] if isinstance(entry, dict) else entry
            target = Path(resource)
            if not target.is_absolute():
                target = path.parent / target
            self.load(target)

    def _parse_services(self, services: dict[str, Any], path: Path) -> None:
        for service_id, spec in services.items():
            if isinstance(spec, str) and spec.startswith("@"):
                self.container.set_alias(service_id, spec[1:])
                continue
            if spec is None:
                spec = {}
            if not isinstance(spec, dict):
                raise SchemaError(
                    f'A service definition must be a mapping, "{service_id}" in "{path}" is not.',
                    path=f"services.{service_id}",
                )

            unknown = set(spec) - _SERVICE_KEYS
            if unknown:
                raise SchemaError(
                    f'Unrecognized key(s) "{", ".join(sorted(unknown))}" for service '
                    f'"{service_id}" in "{path}".',
                    path=f"services.{service_id}",
                )

            if "alias" in spec:
                self.container.set_alias(service_id, Alias(spec["alias"], spec.get("public", False)))
                continue

            self.container.set_definition(service_id, self._parse_definition(service_id, spec))

    def _parse_definition(self, service_id: str, spec: dict[str, Any]) -> Definition:
        if "parent" in spec:
            definition: Definition = ChildDefinition(parent=spec["parent"])
        else:
            definition = Definition()

        definition.cls = spec.get("class")
        definition.arguments = parse_reference(list(spec.get("arguments") or []))
        definition.public = bool(spec.get("public", False))
        definition.abstract = bool(spec.get("abstract", False))
        definition.shared = bool(spec.get("shared", True))

        if "factory" in spec:
            definition.factory = self._parse_callable(spec["factory"])
        if "configurator" in spec:
            definition.configurator = self._parse_callable(spec["configurator"])

        for call in spec.get("calls") or []:
            if isinstance(call, dict):
                method, arguments = call["method"], call.get("arguments") or []
            else:
                method, arguments = call[0], (call[1] if len(call) > 1 else [])
            definition.add_method_call(method, parse_reference(list(arguments)))

        for tag in spec.get("tags") or []:
            if isinstance(tag, str):
                definition.add_tag(tag)
                continue
            attributes = dict(tag)
            try:
                name = attributes.pop("name")
            except KeyError:
                raise SchemaError(
                    f'A "tags" entry is missing a "name" key for service "{service_id}".',
                    path=f"services.{service_id}.tags",
                ) from None
            definition.add_tag(name, attributes)

        return definition

    @staticmethod
    def _parse_callable(spec: Any) -> Any:
        if isinstance(spec, str) and "::" in spec:
            target, method = spec.split("::", 1)
            return (parse_reference(target) if target.startswith("@") else target, method)
        if isinstance(spec, list) and len(spec) == 2:
            return (parse_reference(spec[0]), spec[1])
        return spec
