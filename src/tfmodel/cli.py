"""Command line access to the model cache."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tfmodel import __version__
from tfmodel.cache import ModelCache, open_model_cache
from tfmodel.config import Settings
from tfmodel.errors import ModelCacheError
from tfmodel.logging_config import configure_logging

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Fetch and cache TensorFlow.js models", no_args_is_help=True)


@dataclass
class CliState:
    settings: Settings


def _fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=code)


@app.callback()
def root_callback(
    ctx: typer.Context,
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Override cache.cache_dir"),
) -> None:
    settings = Settings()
    if cache_dir is not None:
        settings.cache.cache_dir = str(cache_dir)
    configure_logging(settings.logging)
    ctx.obj = CliState(settings=settings)


@app.command("version")
def version_cmd() -> None:
    console.print(__version__)


@app.command("resolve")
def resolve_cmd(ctx: typer.Context, url: str = typer.Argument(..., help="model.json URL")) -> None:
    """Download or revalidate a model and print the local model.json path."""
    state: CliState = ctx.obj

    async def _run() -> Path:
        async with open_model_cache(state.settings) as cache:
            return await cache.resolve(url)

    try:
        path = asyncio.run(_run())
    except ModelCacheError as exc:
        _fail(str(exc))
    typer.echo(str(path))


@app.command("list")
def list_cmd(ctx: typer.Context, as_json: bool = typer.Option(False, "--json")) -> None:
    """Show every cached model."""
    state: CliState = ctx.obj

    async def _run() -> tuple[ModelCache, dict]:
        async with open_model_cache(state.settings) as cache:
            return cache, cache.entries()

    try:
        cache, entries = asyncio.run(_run())
    except ModelCacheError as exc:
        _fail(str(exc))

    if as_json:
        console.print_json(json.dumps(cache.index.to_dict()))
        return

    table = Table(title=f"Cached models ({escape(str(cache.root))})")
    table.add_column("URL")
    table.add_column("Hash")
    table.add_column("Last-Modified")
    table.add_column("Complete")
    table.add_column("Path")
    for url, entry in entries.items():
        table.add_row(
            escape(url),
            entry.content_hash,
            entry.last_modified or "-",
            "yes" if cache.is_intact(entry) else "no",
            escape(str(cache.entry_path(entry))),
        )
    console.print(table)


@app.command("remove")
def remove_cmd(ctx: typer.Context, url: str = typer.Argument(..., help="model.json URL")) -> None:
    """Delete a cached model and its index entry."""
    state: CliState = ctx.obj

    async def _run() -> bool:
        async with open_model_cache(state.settings) as cache:
            return await cache.remove(url)

    try:
        removed = asyncio.run(_run())
    except ModelCacheError as exc:
        _fail(str(exc))
    if not removed:
        _fail(f"{url} is not cached")
    console.print(f"removed {escape(url)}")
