"""Command-line inspection of compiled configurations.

Usage:
    cask compile config.yml --bundle AppBundle=src/app
    cask compile config.yml --service cask.orm.default_configuration
    cask compile config.yml --tag cask.dbal.schema_filter
    cask compile config.yml --parameter cask.connections
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

import click
import yaml
from loguru import logger

from cask.bundle import BundleMetadata, OrmBundle
from cask.core import (
    CaskError,
    ContainerBuilder,
    Definition,
    Reference,
    ServiceLocatorArgument,
    YamlFileLoader,
)


def build_container(
    files: tuple[str, ...], bundles: dict[str, BundleMetadata], debug: bool, cache_dir: str
) -> ContainerBuilder:
    """Load ``files`` on top of the bundle and compile them."""
    container = ContainerBuilder(
        {
            "kernel.debug": debug,
            "kernel.bundles": bundles,
            "kernel.cache_dir": cache_dir,
        }
    )
    # Cache pools normally come from the framework
    container.register("cache.system", "cache.adapter.ArrayAdapter")
    container.register("cache.app", "cache.adapter.ArrayAdapter")

    OrmBundle().build(container)
    for file in files:
        YamlFileLoader(container, Path(file).parent).load(Path(file).name)
    container.compile()
    return container


def _parse_bundle(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]):
    bundles = {}
    for value in values:
        name, separator, path = value.partition("=")
        if not separator or not name or not path:
            raise click.BadParameter(f"expected NAME=PATH, got '{value}'")
        bundles[name] = BundleMetadata(path, name)
    return bundles


def _plain(value: Any) -> Any:
    """Render definitions and references as YAML-friendly values."""
    if isinstance(value, Reference):
        return f"@{value.id}"
    if isinstance(value, dict):
        return {str(_plain(key)): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, type):
        return f"{value.__module__}:{value.__qualname__}"
    if isinstance(value, ServiceLocatorArgument):
        return {"locator": _plain(value.values)}
    if is_dataclass(value):
        return _plain(asdict(value))
    return value


def describe(definition: Definition) -> dict[str, Any]:
    described = {
        "class": _plain(definition.cls),
        "public": definition.public,
        "abstract": definition.abstract,
    }
    if definition.factory is not None:
        described["factory"] = _plain(definition.factory)
    if definition.configurator is not None:
        described["configurator"] = _plain(definition.configurator)
    if definition.arguments:
        described["arguments"] = _plain(definition.arguments)
    if definition.method_calls:
        described["calls"] = [[call.method, _plain(call.arguments)] for call in definition.method_calls]
    if definition.tags:
        described["tags"] = _plain(definition.tags)
    return described


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log what the builders and passes do")
def main(verbose: bool) -> None:
    """Cask configuration tools."""
    if verbose:
        logger.enable("cask")


@main.command("compile")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--bundle", "bundles", multiple=True, callback=_parse_bundle, help="Enabled bundle as NAME=PATH"
)
@click.option("--debug/--no-debug", default=False, help="Value of kernel.debug")
@click.option("--cache-dir", default="var/cache", show_default=True, help="Value of kernel.cache_dir")
@click.option("--service", "service_id", help="Show one service definition")
@click.option("--tag", help="List the services carrying a tag")
@click.option("--parameter", help="Show one parameter")
def compile_command(
    files: tuple[str, ...],
    bundles: dict[str, BundleMetadata],
    debug: bool,
    cache_dir: str,
    service_id: str | None,
    tag: str | None,
    parameter: str | None,
) -> None:
    """Compile configuration FILES and inspect the resulting graph."""
    try:
        container = build_container(files, bundles, debug, cache_dir)
        if service_id:
            resolved = container.resolve_alias(service_id)
            if resolved != service_id:
                click.echo(f"# alias of {resolved}")
            output: Any = {resolved: describe(container.get_definition(resolved))}
        elif tag:
            output = container.find_tagged_service_ids(tag)
        elif parameter:
            output = {parameter: _plain(container.get_parameter(parameter))}
        else:
            for name in sorted(container.definitions):
                click.echo(name)
            for name in sorted(container.aliases):
                click.echo(f"{name} -> {container.aliases[name].id}")
            return
    except CaskError as e:
        raise click.ClickException(str(e)) from e

    click.echo(yaml.safe_dump(output, default_flow_style=False, sort_keys=False).rstrip())


if __name__ == "__main__":
    main()
