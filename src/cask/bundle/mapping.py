"""Metadata driver chain of an entity manager.

Each configured mapping contributes one ``add_driver(Reference, prefix)`` call
on ``cask.orm.{em}_metadata_driver``, in declaration order. Mappings of the
same type share one typed driver, ``cask.orm.{em}_{type}_metadata_driver``,
whose paths accumulate.

A mapping whose ``dir`` is not an existing directory is a bundle mapping: its
type, directory and prefix are derived from the bundle's location (see
``detect_bundle_type``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from loguru import logger

from cask.core import ContainerBuilder, Definition, Reference, SchemaError

from .config import BundleMetadata, MappingConfig

ENTITY_DIR = "Entity"
CONFIG_DIR = Path("Resources") / "config" / "doctrine"
FILE_TYPES = ("xml", "yml", "php")
DRIVER_TYPES = ("annotation", "attribute", "xml", "yml", "php", "staticphp")
CLASS_DIR_TYPES = ("annotation", "attribute", "staticphp")


def bundle_metadata(bundles: Mapping[str, Any]) -> dict[str, BundleMetadata]:
    """Read ``kernel.bundles``, accepting BundleMetadata, mappings or bare paths."""
    result = {}
    for name, value in bundles.items():
        if isinstance(value, BundleMetadata):
            result[name] = value
        elif isinstance(value, Mapping):
            result[name] = BundleMetadata(str(value["path"]), value.get("namespace") or name)
        else:
            result[name] = BundleMetadata(str(value), name)
    return result


def detect_mapping_type(directory: Path) -> str | None:
    """Guess the driver type from the mapping files found in ``directory``."""
    for file_type in FILE_TYPES:
        if any(directory.glob(f"*.orm.{file_type}")):
            return file_type
    return None


def detect_bundle_type(bundle_dir: Path) -> str | None:
    """Mapping files under Resources/config/doctrine win over an Entity/ directory."""
    detected = detect_mapping_type(bundle_dir / CONFIG_DIR)
    if detected is not None:
        return detected
    if (bundle_dir / ENTITY_DIR).is_dir():
        return "annotation"
    return None


class MetadataDriverBuilder:
    """Builds the metadata driver chain of one entity manager."""

    def __init__(self, container: ContainerBuilder, em_name: str, bundles: Mapping[str, BundleMetadata]):
        self.container = container
        self.em_name = em_name
        self.bundles = bundles
        self.aliases: dict[str, str] = {}

    def driver_id(self, driver_type: str) -> str:
        return f"cask.orm.{self.em_name}_{driver_type}_metadata_driver"

    def load(self, mappings: Mapping[str, MappingConfig]) -> str:
        """Register typed drivers and the chain; return the chain's service id."""
        chain_id = f"cask.orm.{self.em_name}_metadata_driver"
        chain = Definition("%cask.orm.metadata.driver_chain.class%")
        drivers: dict[str, Definition] = {}

        for name, mapping in mappings.items():
            if not mapping.mapping:
                continue
            resolved = self._resolve(name, mapping)
            if resolved is None:
                logger.warning(f"No mapping found for bundle '{name}' in entity manager '{self.em_name}'")
                continue

            driver_type, directory, prefix, is_bundle = resolved
            if driver_type not in drivers:
                drivers[driver_type] = self._create_driver(driver_type)
            self._add_path(drivers[driver_type], driver_type, directory, prefix)
            chain.add_method_call("add_driver", [Reference(self.driver_id(driver_type)), prefix])

            if mapping.alias:
                self.aliases[mapping.alias] = prefix
            elif is_bundle:
                self.aliases[name] = prefix

        for driver_type, definition in drivers.items():
            self.container.set_definition(self.driver_id(driver_type), definition)
        self.container.set_definition(chain_id, chain)

        logger.debug(
            f"Metadata driver chain for '{self.em_name}': {len(chain.method_calls)} mapping(s)"
        )
        return chain_id

    def _resolve(self, name: str, mapping: MappingConfig) -> tuple[str, str, str, bool] | None:
        path = f"cask.orm.entity_managers.{self.em_name}.mappings.{name}"
        directory = self.container.resolve_value(mapping.dir) if mapping.dir else None
        driver_type = mapping.type
        prefix = mapping.prefix

        is_bundle = mapping.is_bundle
        if is_bundle is None:
            is_bundle = not (directory and Path(directory).is_dir())

        if is_bundle:
            bundle = self.bundles.get(name)
            if bundle is None:
                raise SchemaError(f'Bundle "{name}" does not exist or it is not enabled.', path=path)
            bundle_dir = Path(bundle.path)

            driver_type = driver_type or detect_bundle_type(bundle_dir)
            if driver_type is None:
                return None
            if not directory:
                directory = bundle_dir / (ENTITY_DIR if driver_type in CLASS_DIR_TYPES else CONFIG_DIR)
            else:
                directory = bundle_dir / directory
            prefix = prefix or f"{bundle.namespace}.{ENTITY_DIR}"
        elif not driver_type and directory:
            driver_type = detect_mapping_type(Path(directory)) or "annotation"

        if not directory or not driver_type or not prefix:
            raise SchemaError(
                f'Mapping definitions for entity manager "{self.em_name}" require at least the '
                f'"type", "dir" and "prefix" options.',
                path=path,
            )
        if not Path(directory).is_dir():
            raise SchemaError(
                f'Invalid mapping path given. Cannot load mapping/bundle named "{name}".', path=path
            )
        if driver_type not in DRIVER_TYPES:
            raise SchemaError(
                f'Can only configure "{", ".join(DRIVER_TYPES)}" mapping drivers, '
                f'got "{driver_type}" for mapping "{name}".',
                path=f"{path}.type",
            )

        return driver_type, str(Path(directory).resolve()), prefix, bool(is_bundle)

    def _create_driver(self, driver_type: str) -> Definition:
        definition = Definition(f"%cask.orm.metadata.{driver_type}.class%")
        if driver_type == "annotation":
            definition.set_arguments([Reference("cask.orm.metadata.annotation_reader"), []])
        elif driver_type in ("xml", "yml"):
            definition.set_arguments([{}])
            definition.add_method_call("set_global_basename", ["mapping"])
        else:
            definition.set_arguments([[]])
        return definition

    @staticmethod
    def _add_path(definition: Definition, driver_type: str, directory: str, prefix: str) -> None:
        if driver_type == "annotation":
            definition.arguments[1].append(directory)
        elif driver_type in ("xml", "yml"):
            definition.arguments[0][directory] = prefix
        else:
            definition.arguments[0].append(directory)
