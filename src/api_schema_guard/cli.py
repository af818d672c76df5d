"""CLI entry point for api-schema-guard."""

import json
from pathlib import Path

import click
import yaml

from api_schema_guard.diagnostics import Diagnostics
from api_schema_guard.generator.loader import discover_route_modules
from api_schema_guard.generator.openapi import create_openapi_spec
from api_schema_guard.options import OpenApiOptions


def _echo_hook(level: str):
    def hook(message: str, context: dict) -> None:
        suffix = f" {context}" if context else ""
        click.echo(f"{level}: {message}{suffix}", err=True)

    return hook


def _load_options(config: Path | None, title: str | None, version: str | None, base_path: str | None) -> OpenApiOptions:
    """Merge the config file with command-line overrides."""
    options = OpenApiOptions.from_yaml(config) if config else OpenApiOptions()

    updates = {}
    if title is not None:
        updates["title"] = title
    if version is not None:
        updates["version"] = version
    if base_path is not None:
        updates["base_path"] = base_path
    # Discovered files are keyed relative to the routes directory.
    if "base_dir" not in options.model_fields_set:
        updates["base_dir"] = ""
    return options.model_copy(update=updates)


def _output_format(output: Path, fmt: str) -> str:
    if fmt != "auto":
        return fmt
    return "yaml" if output.suffix.lower() in (".yaml", ".yml") else "json"


@click.group()
def main():
    """API Schema Guard: build safe OpenAPI documents from route modules."""
    pass


@main.command()
@click.argument("routes_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the OpenAPI document.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "json", "yaml"]), help="Output format.")
@click.option("--config", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML file with document options.")
@click.option("--title", default=None, help="Document title.")
@click.option("--version", "api_version", default=None, help="Document version.")
@click.option("--base-path", default=None, help="Only include paths starting with this prefix.")
def generate(routes_dir: Path, output: Path, fmt: str, config: Path | None, title: str | None, api_version: str | None, base_path: str | None):
    """Generate an OpenAPI document from the route modules under ROUTES_DIR."""
    options = _load_options(config, title, api_version, base_path)
    diagnostics = Diagnostics(on_error=_echo_hook("error"), on_warn=_echo_hook("warning"))

    click.echo(f"Scanning {routes_dir}...")
    modules = discover_route_modules(routes_dir)
    click.echo(f"Found {len(modules)} route modules.")

    spec = create_openapi_spec(modules, options, diagnostics)
    operations = sum(len(item) for item in spec["paths"].values())

    output.parent.mkdir(parents=True, exist_ok=True)
    if _output_format(output, fmt) == "yaml":
        text = yaml.safe_dump(spec, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(spec, indent=2, ensure_ascii=False) + "\n"
    output.write_text(text, encoding="utf-8")
    click.echo(f"Wrote {operations} operations to {output}")


@main.command()
@click.argument("routes_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
def check(routes_dir: Path):
    """Build the OpenAPI document for ROUTES_DIR in memory and report every rejected definition.

    Sanitizing, normalizing and exporting all run, so a schema that only
    fails to convert is caught too. Nothing is written.
    """
    failures: list[str] = []

    def record(message: str, context: dict) -> None:
        suffix = f" {context}" if context else ""
        failures.append(f"{message}{suffix}")

    diagnostics = Diagnostics(on_error=record, on_warn=_echo_hook("warning"))
    spec = create_openapi_spec(discover_route_modules(routes_dir), OpenApiOptions(base_dir=""), diagnostics)

    for path, item in spec["paths"].items():
        for method in item:
            click.echo(f"  {method.upper()} {path}")

    for failure in failures:
        click.echo(f"error: {failure}", err=True)

    if failures:
        raise click.ClickException(f"{len(failures)} definition(s) rejected")
    click.echo("All route modules are valid.")
