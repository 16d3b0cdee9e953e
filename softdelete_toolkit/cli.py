#!/usr/bin/env python3
"""
Command-line interface for the soft delete toolkit.

Shows configuration and cascade relationships, and manages soft deleted rows.
"""

import asyncio
import importlib
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree
from sqlalchemy import Engine, create_engine, inspect
from sqlalchemy.orm import Session

from . import __version__
from .config import SoftDeleteConfig
from .soft_delete import (
    CascadeSoftDeleteMixin,
    CascadeSoftDeleteService,
    RelationshipRegistry,
    RegistryConfigurationError,
    SingleSoftDeleteService,
    SoftDeleteResult,
    SQLAlchemyDataStore,
)

console = Console()


def load_object(path: str) -> Any:
    """Import "package.module:attribute" and return the attribute."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(f"Expected MODULE:NAME, got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"Cannot import {module_name}: {e}") from e
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise click.BadParameter(f"{module_name} has no attribute {attribute}") from None


def load_config(config_file: Optional[str]) -> SoftDeleteConfig:
    if config_file:
        return SoftDeleteConfig.from_file(config_file)
    return SoftDeleteConfig.from_env()


def parse_key(model: Any, raw: str) -> Any:
    """Convert a command line key to the primary key's Python type."""
    columns = inspect(model).primary_key
    parts = raw.split(",") if len(columns) > 1 else [raw]
    if len(parts) != len(columns):
        raise click.BadParameter(
            f"{model.__name__} needs {len(columns)} comma separated key values"
        )

    values = []
    for column, part in zip(columns, parts):
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = str
        values.append(python_type(part) if python_type in (int, float) else part)
    return tuple(values) if len(values) > 1 else values[0]


def print_result(result: SoftDeleteResult) -> None:
    if result.is_valid:
        console.print(f"[green]{result.message}[/green]")
        if len(result.by_depth) > 1:
            for depth, count in result.by_depth.items():
                console.print(f"  [dim]level {depth}:[/dim] {count}")
        return

    for problem in result.errors:
        console.print(f"[red]{problem.kind.value}:[/red] {problem.message}")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Soft Delete Toolkit - recoverable deletes for SQLAlchemy models."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Soft Delete Toolkit[/bold blue] v{__version__}\n"
                "[dim]Recoverable deletes for SQLAlchemy models[/dim]\n\n"
                "Use [bold]softdelete --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Inspect soft delete configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
@click.option("--file", "config_file", type=click.Path(exists=True), help="Config file")
def config_show(format: str, config_file: Optional[str]) -> None:
    """Display the effective configuration."""
    try:
        current = load_config(config_file)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    config_dict = current.to_dict()
    if format == "json":
        console.print_json(data=config_dict)
    elif format == "yaml":
        console.print(yaml.safe_dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Soft Delete Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Description", style="dim")

        for name, field_info in SoftDeleteConfig.model_fields.items():
            value = config_dict[name]
            if isinstance(value, bool):
                value = "✓" if value else "✗"
            table.add_row(name, str(value), field_info.description or "")

        console.print(table)


@config.command("validate")
@click.option("--file", "config_file", type=click.Path(exists=True), help="Config file")
def config_validate(config_file: Optional[str]) -> None:
    """Check that the configuration loads."""
    try:
        current = load_config(config_file)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]✗ Invalid configuration:[/red] {e}")
        sys.exit(1)

    console.print("[green]✓ Configuration is valid[/green]")
    if current.max_cascade_depth > 100:
        console.print(
            f"[yellow]⚠ max_cascade_depth is {current.max_cascade_depth}; "
            "cycles will take long to detect[/yellow]"
        )


@cli.group()
def registry() -> None:
    """Inspect cascade relationships."""
    pass


def _add_branch(tree: Tree, node: Dict[str, Any]) -> None:
    for child in node["dependents"]:
        label = f"[cyan]{child['type']}[/cyan] [dim]via {child['via']}[/dim]"
        if child.get("recursive"):
            label += " [yellow](recursive)[/yellow]"
        _add_branch(tree.add(label), child)


@registry.command("show")
@click.argument("base")
@click.option("--allow-cycles", is_flag=True, help="Accept self-referential graphs")
def registry_show(base: str, allow_cycles: bool) -> None:
    """Show the cascade tree declared on the models of BASE (MODULE:NAME)."""
    base_class = load_object(base)
    try:
        relationships = RelationshipRegistry.from_models(
            base_class, allow_cycles=allow_cycles
        )
    except RegistryConfigurationError as e:
        console.print(f"[red]Invalid cascade configuration:[/red] {e}")
        sys.exit(1)

    if not relationships.entity_types:
        console.print("[yellow]No cascade relationships declared[/yellow]")
        return

    dependents = {edge.dependent for edge in relationships.edges()}
    top_level = [
        entity_type
        for entity_type in relationships.entity_types
        if entity_type not in dependents
    ] or list(relationships.entity_types)

    for entity_type in top_level:
        description = relationships.describe(entity_type)
        tree = Tree(f"[bold]{description['type']}[/bold]")
        _add_branch(tree, description)
        console.print(tree)


@cli.group()
def trash() -> None:
    """Manage soft deleted rows."""
    pass


def _open_store(database_url: str) -> Tuple[Engine, Session, SQLAlchemyDataStore]:
    engine = create_engine(database_url)
    session = Session(engine)
    return engine, session, SQLAlchemyDataStore(session)


@trash.command("list")
@click.argument("model")
@click.option("--database-url", envvar="SOFTDELETE_DATABASE_URL", required=True)
@click.option("--limit", type=int, default=100, help="Maximum rows to show")
def trash_list(model: str, database_url: str, limit: int) -> None:
    """List rows of MODEL (MODULE:CLASS) that were soft deleted directly."""
    model_class = load_object(model)
    engine, session, store = _open_store(database_url)
    try:
        service = SingleSoftDeleteService(store)
        columns = [column.key for column in inspect(model_class).columns]

        table = Table(title=f"Soft deleted {model_class.__name__}", show_header=True)
        for column in columns:
            table.add_column(column)

        shown = 0
        for entity in service.list_soft_deleted(model_class):
            if shown >= limit:
                break
            table.add_row(*(str(getattr(entity, column)) for column in columns))
            shown += 1

        if shown == 0:
            console.print(f"[dim]No soft deleted {model_class.__name__} rows[/dim]")
        else:
            console.print(table)
    finally:
        session.close()
        engine.dispose()


def _reset_service(
    store: SQLAlchemyDataStore,
    model_class: Any,
    config_file: Optional[str],
    allow_cycles: bool,
) -> Any:
    settings = load_config(config_file)
    if issubclass(model_class, CascadeSoftDeleteMixin):
        # Mapped classes share their declarative base's mapper registry
        relationships = RelationshipRegistry.from_models(
            model_class, allow_cycles=allow_cycles
        )
        return CascadeSoftDeleteService(store, relationships, config=settings)
    return SingleSoftDeleteService(store, config=settings)


@trash.command("reset")
@click.argument("model")
@click.argument("keys", nargs=-1, required=True)
@click.option("--database-url", envvar="SOFTDELETE_DATABASE_URL", required=True)
@click.option("--allow-cycles", is_flag=True, help="Accept self-referential graphs")
@click.option("--file", "config_file", type=click.Path(exists=True), help="Config file")
def trash_reset(
    model: str,
    keys: List[str],
    database_url: str,
    config_file: Optional[str],
    allow_cycles: bool,
) -> None:
    """Bring back soft deleted MODEL rows with the given KEYS."""
    model_class = load_object(model)
    engine, session, store = _open_store(database_url)
    try:
        try:
            service = _reset_service(store, model_class, config_file, allow_cycles)
        except RegistryConfigurationError as e:
            console.print(f"[red]Invalid cascade configuration:[/red] {e}")
            sys.exit(1)
        parsed = [parse_key(model_class, key) for key in keys]
        result = asyncio.run(service.reset_soft_delete(model_class, parsed))
    finally:
        session.close()
        engine.dispose()
    print_result(result)


@trash.command("purge")
@click.argument("model")
@click.argument("keys", nargs=-1, required=True)
@click.option("--database-url", envvar="SOFTDELETE_DATABASE_URL", required=True)
@click.confirmation_option(prompt="Hard deleted rows cannot be recovered. Continue?")
def trash_purge(model: str, keys: List[str], database_url: str) -> None:
    """Hard delete soft deleted MODEL rows with the given KEYS."""
    model_class = load_object(model)
    engine, session, store = _open_store(database_url)
    try:
        service = SingleSoftDeleteService(store)
        parsed = [parse_key(model_class, key) for key in keys]
        result = asyncio.run(service.hard_delete_if_soft_deleted(model_class, parsed))
    finally:
        session.close()
        engine.dispose()
    print_result(result)


if __name__ == "__main__":
    cli()
