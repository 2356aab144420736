#!/usr/bin/env python3
"""Command line access to query group operations."""
import asyncio
import json
import pathlib
from typing import Awaitable, Callable, List, Optional

import typer
from pydantic import ValidationError
from rich.table import Table
from typing_extensions import Annotated

from querygroup.backends import BackendDescriptor, BackendResolver, load_backend_catalog
from querygroup.common.errors import QueryGroupError
from querygroup.common.logger import configure_logging
from querygroup.common.settings import settings
from querygroup.console import console, print_error, print_success
from querygroup.execution import QueryRunner
from querygroup.group import ConfigurationBridge
from querygroup.models import QueryGroupOptions
from querygroup.saved_queries import (
    HttpSavedQuerySetLoader,
    InMemorySavedQuerySetLoader,
    SavedQuerySetLoader,
    load_saved_query_sets,
)

app = typer.Typer(
    name="querygroup",
    help="Inspect backends and run query group operations on panel options files.",
    no_args_is_help=True,
    add_completion=False,
)

# Shared Options
CatalogOption = Annotated[Optional[pathlib.Path], typer.Option("--catalog", help="Path to backend catalog YAML")]
SavedQueriesOption = Annotated[
    Optional[pathlib.Path], typer.Option("--saved-queries", help="Path to saved query sets YAML")
]
OutOption = Annotated[Optional[pathlib.Path], typer.Option("--out", "-o", help="Write the resulting options here")]
OptionsArgument = Annotated[pathlib.Path, typer.Argument(help="Panel options JSON file")]


@app.callback()
def global_callback(
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name (loads .env.<name>).")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit logs as JSON lines")] = False,
):
    """
    Query group CLI Entry Point.
    """
    if env:
        settings.configure_env(env)
    configure_logging(level=log_level or settings.log_level, json_format=json_logs or settings.log_json)


def _load_catalog(catalog: Optional[pathlib.Path]) -> List[BackendDescriptor]:
    path = catalog or pathlib.Path(settings.backend_catalog_path)
    try:
        return load_backend_catalog(path)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)


def _load_options(path: pathlib.Path) -> QueryGroupOptions:
    try:
        return QueryGroupOptions.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError:
        print_error(f"Options file not found: {path}")
        raise typer.Exit(code=1)
    except (ValueError, ValidationError) as e:
        print_error(f"Invalid options file {path}: {e}")
        raise typer.Exit(code=1)


def _make_loader(saved_queries: Optional[pathlib.Path]) -> SavedQuerySetLoader:
    if saved_queries is None and settings.saved_queries_url:
        return HttpSavedQuerySetLoader(settings.saved_queries_url, timeout=settings.saved_queries_timeout_sec)
    path = saved_queries or pathlib.Path(settings.saved_queries_path)
    try:
        return load_saved_query_sets(path)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)


async def _run_operation(
    options: QueryGroupOptions,
    resolver: BackendResolver,
    loader: SavedQuerySetLoader,
    operation: Callable[[ConfigurationBridge], Awaitable[Optional[QueryGroupOptions]]],
) -> QueryGroupOptions:
    pushed: List[QueryGroupOptions] = []
    runner = QueryRunner()
    bridge = ConfigurationBridge(
        options,
        resolver,
        loader,
        on_options_change=pushed.append,
        on_run_queries=lambda: None,
        query_runner=runner,
    )
    try:
        await bridge.initialize()
        await operation(bridge)
        return bridge.options
    finally:
        bridge.release()
        runner.close()
        await bridge.wait_released()
        if isinstance(loader, HttpSavedQuerySetLoader):
            await loader.aclose()


def _emit(options: QueryGroupOptions, out: Optional[pathlib.Path]) -> None:
    text = json.dumps(options.to_dict(), indent=2)
    if out is None:
        console.print_json(text)
        return
    out.write_text(text + "\n", encoding="utf-8")
    print_success(f"Wrote options to {out}")


@app.command()
def backends(
    catalog: CatalogOption = None,
    mixed: Annotated[bool, typer.Option("--mixed", help="Include the mixed virtual backend")] = False,
):
    """
    List the backends in the catalog.
    """
    resolver = BackendResolver(_load_catalog(catalog))

    table = Table(title="Configured Backends")
    table.add_column("UID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Type")
    table.add_column("Default", style="green")
    table.add_column("Capabilities")

    for descriptor in resolver.get_list(mixed=mixed):
        table.add_row(
            descriptor.uid,
            descriptor.name,
            descriptor.type,
            "yes" if descriptor.is_default else "",
            ", ".join(descriptor.capabilities.enabled()),
        )

    console.print(table)


@app.command()
def switch(
    options_file: OptionsArgument,
    backend: Annotated[str, typer.Argument(help="uid or name of the backend to switch to")],
    catalog: CatalogOption = None,
    out: OutOption = None,
):
    """
    Switch a panel's queries to another backend.
    """
    resolver = BackendResolver(_load_catalog(catalog))
    options = _load_options(options_file)

    target = resolver.get_instance_settings(backend)
    if target is None:
        print_error(f"Backend not found: {backend}")
        raise typer.Exit(code=1)

    async def operation(bridge: ConfigurationBridge):
        return await bridge.switch_backend(target)

    try:
        result = asyncio.run(_run_operation(options, resolver, InMemorySavedQuerySetLoader(), operation))
    except QueryGroupError as e:
        print_error(e.message)
        raise typer.Exit(code=1)
    _emit(result, out)


@app.command()
def link(
    options_file: OptionsArgument,
    uid: Annotated[str, typer.Argument(help="uid of the saved query set, or '' to unlink")],
    catalog: CatalogOption = None,
    saved_queries: SavedQueriesOption = None,
    out: OutOption = None,
):
    """
    Replace a panel's queries with a saved query set.
    """
    resolver = BackendResolver(_load_catalog(catalog))
    options = _load_options(options_file)
    loader = _make_loader(saved_queries)

    async def operation(bridge: ConfigurationBridge):
        return await bridge.link_saved_query_set(uid or None)

    try:
        result = asyncio.run(_run_operation(options, resolver, loader, operation))
    except QueryGroupError as e:
        print_error(e.message)
        raise typer.Exit(code=1)
    _emit(result, out)


if __name__ == "__main__":
    app()
