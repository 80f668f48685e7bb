"""CLI entry point for relquery.

Invoked as::

    relquery [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m relquery.cli.main

Commands
--------
schema      Load, freeze and print a schema file
query       Run a list query over a schema and a fixtures file
count       Count entities matching filters
stores      List registered store backends
version     Show version information
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from relquery.config import EngineConfig
    from relquery.engine import Engine
    from relquery.query.engine import QueryRow

console = Console()
err_console = Console(stderr=True)


def _read_text(path: str) -> str:
    """Read a text file, exiting on error."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        err_console.print(f"[red]Error:[/red] File not found: {path}")
        sys.exit(1)
    except OSError as exc:
        err_console.print(f"[red]Error:[/red] Cannot read {path}: {exc}")
        sys.exit(1)


def _build_engine(schema_path: str, config: EngineConfig) -> Engine:
    """Load a schema file into a frozen engine, printing errors and exiting on failure."""
    from relquery.engine import Engine
    from relquery.errors import RelqueryError, SchemaValidationError

    try:
        engine = Engine.from_yaml(_read_text(schema_path), config)
        engine.freeze()
    except SchemaValidationError as exc:
        err_console.print(f"[red]Schema errors[/red] in {schema_path}:")
        for diagnostic in exc.diagnostics:
            err_console.print(f"  {diagnostic}")
        sys.exit(1)
    except RelqueryError as exc:
        err_console.print(f"[red]Schema error[/red] in {schema_path}: {exc}")
        sys.exit(1)
    return engine


def _load_fixtures(engine: Engine, data_path: str) -> None:
    """Create the entities of a YAML fixtures file, exiting on failure."""
    from relquery.errors import RelqueryError

    try:
        data = yaml.safe_load(_read_text(data_path)) or {}
    except yaml.YAMLError as exc:
        err_console.print(f"[red]Error:[/red] {data_path} is not valid YAML: {exc}")
        sys.exit(1)
    if not isinstance(data, dict):
        err_console.print(f"[red]Error:[/red] {data_path} must map type names to lists of records")
        sys.exit(1)
    try:
        engine.load_fixtures(data)
    except RelqueryError as exc:
        err_console.print(f"[red]Fixture error[/red] in {data_path}: {exc}")
        sys.exit(1)


def _parse_where(pairs: tuple[str, ...]) -> dict[str, Any]:
    where: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected PATH=VALUE, got {pair!r}", param_hint="--where")
        where[key.strip()] = value
    return where


def _render(text: str, lang: str) -> None:
    console.print(Syntax(text, lang, line_numbers=False))


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]null[/dim]"
    if isinstance(value, dict) and set(value) == {"count"}:
        return str(value["count"])
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _print_rows(rows: list[QueryRow], title: str) -> None:
    table = Table(title=title, show_lines=False)
    dicts = [row.to_dict() for row in rows]
    columns: list[str] = []
    for item in dicts:
        for key in item:
            if key not in columns:
                columns.append(key)
    for column in columns:
        table.add_column(column)
    for item in dicts:
        table.add_row(*(_cell(item.get(column)) for column in columns))
    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="relquery")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging on stderr")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="YAML engine configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """Relation-query engine for content types: schemas, relations, filters and sorting."""
    from relquery.config import EngineConfig
    from relquery.errors import ConfigError

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    config = EngineConfig()
    if config_path is not None:
        try:
            config = EngineConfig.from_yaml(_read_text(config_path))
        except ConfigError as exc:
            err_console.print(f"[red]Config error[/red] in {config_path}: {exc}")
            sys.exit(1)
    ctx.obj = config


# ---------------------------------------------------------------------------
# version command
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from relquery import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]relquery[/bold]", f"v{__version__}")
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("Platform", sys.platform)
    console.print(table)


# ---------------------------------------------------------------------------
# stores command
# ---------------------------------------------------------------------------


@cli.command(name="stores")
def stores_command() -> None:
    """List store backends, including those installed via entry-points."""
    from relquery.store import store_registry

    store_registry.load_entrypoints()
    console.print("[bold]Registered store backends:[/bold]")
    for name in store_registry.list_stores():
        console.print(f"  {name}  [dim]{store_registry.get(name).__qualname__}[/dim]")


# ---------------------------------------------------------------------------
# schema command
# ---------------------------------------------------------------------------


@cli.command(name="schema")
@click.argument("schema_file", type=click.Path(exists=False))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "yaml"], case_sensitive=False),
    default="table",
    help="Output format for the resolved schema",
)
@click.option("--strict", is_flag=True, default=False, help="Treat schema warnings as errors")
@click.pass_obj
def schema_command(config: EngineConfig, schema_file: str, output_format: str, strict: bool) -> None:
    """Load, resolve and print a schema.

    SCHEMA_FILE is a YAML document with a 'types' list.  Inverse
    attributes implied by two-sided relations are included in the output.
    """
    if strict:
        config = config.with_overrides(strict_schema=True)
    engine = _build_engine(schema_file, config)

    for diagnostic in engine.registry.diagnostics:
        err_console.print(f"[yellow]{diagnostic}[/yellow]")

    if output_format == "json":
        _render(json.dumps(engine.registry.to_dict(), indent=2), "json")
        return
    if output_format == "yaml":
        from relquery.schema.loader import dump_types_yaml

        _render(dump_types_yaml(list(engine.registry)), "yaml")
        return

    from relquery.schema.types import RelationAttribute

    for entity_type in engine.registry:
        table = Table(title=f"{entity_type.name} (schema v{engine.registry.version})")
        table.add_column("Attribute", style="bold")
        table.add_column("Kind")
        table.add_column("Target")
        table.add_column("Inverse")
        for attr in entity_type.attributes:
            if isinstance(attr, RelationAttribute):
                kind = attr.kind.value + (" [dim](dominant)[/dim]" if attr.dominant else "")
                table.add_row(attr.name, kind, attr.target, attr.inverse or "")
            else:
                table.add_row(attr.name, attr.type.value, "", "")
        console.print(table)


# ---------------------------------------------------------------------------
# query command
# ---------------------------------------------------------------------------


@cli.command(name="query")
@click.argument("schema_file", type=click.Path(exists=False))
@click.argument("data_file", type=click.Path(exists=False))
@click.argument("type_name")
@click.option("--where", "-w", "where", multiple=True, help="Filter PATH=VALUE (repeatable)")
@click.option("--sort", "-s", "sort", multiple=True, help="Sort key PATH[:ASC|DESC] (repeatable)")
@click.option("--count", "count_attrs", multiple=True, help="Annotate this relation with a count")
@click.option("--populate", "populate_attrs", multiple=True, help="Annotate this relation with its values")
@click.option("--limit", type=int, default=None, help="Maximum number of rows")
@click.option("--offset", type=int, default=0, help="Rows to skip")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "yaml"], case_sensitive=False),
    default="table",
    help="Output format",
)
@click.pass_obj
def query_command(
    config: EngineConfig,
    schema_file: str,
    data_file: str,
    type_name: str,
    where: tuple[str, ...],
    sort: tuple[str, ...],
    count_attrs: tuple[str, ...],
    populate_attrs: tuple[str, ...],
    limit: int | None,
    offset: int,
    output_format: str,
) -> None:
    """List TYPE_NAME entities from DATA_FILE.

    SCHEMA_FILE is the YAML schema; DATA_FILE maps type names to lists of
    records whose relation values are ids.

    Examples:

    \b
        relquery query schema.yaml data.yaml collector -w stamps.name=1946
        relquery query schema.yaml data.yaml stamp -s collector.name:DESC
    """
    from relquery.errors import RelqueryError

    engine = _build_engine(schema_file, config)
    _load_fixtures(engine, data_file)

    projection: dict[str, str] | None = None
    if count_attrs or populate_attrs:
        projection = {name: "count" for name in count_attrs}
        projection.update({name: "populate" for name in populate_attrs})

    try:
        rows = engine.query(
            type_name,
            where=_parse_where(where),
            sort=list(sort),
            projection=projection,
            limit=limit,
            offset=offset,
        )
    except RelqueryError as exc:
        err_console.print(f"[red]Query error:[/red] {exc}")
        sys.exit(1)

    if output_format == "json":
        _render(json.dumps([r.to_dict() for r in rows], indent=2, default=str), "json")
    elif output_format == "yaml":
        _render(yaml.safe_dump([r.to_dict() for r in rows], sort_keys=False, allow_unicode=True), "yaml")
    else:
        _print_rows(rows, title=f"{type_name}: {len(rows)} row(s)")


# ---------------------------------------------------------------------------
# count command
# ---------------------------------------------------------------------------


@cli.command(name="count")
@click.argument("schema_file", type=click.Path(exists=False))
@click.argument("data_file", type=click.Path(exists=False))
@click.argument("type_name")
@click.option("--where", "-w", "where", multiple=True, help="Filter PATH=VALUE (repeatable)")
@click.pass_obj
def count_command(
    config: EngineConfig,
    schema_file: str,
    data_file: str,
    type_name: str,
    where: tuple[str, ...],
) -> None:
    """Count TYPE_NAME entities in DATA_FILE matching the filters."""
    from relquery.errors import RelqueryError

    engine = _build_engine(schema_file, config)
    _load_fixtures(engine, data_file)
    try:
        total = engine.count_where(type_name, _parse_where(where))
    except RelqueryError as exc:
        err_console.print(f"[red]Query error:[/red] {exc}")
        sys.exit(1)
    console.print(total)


if __name__ == "__main__":
    cli()
