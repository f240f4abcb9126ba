"""Typer CLI entry points for the RetailPulse job service."""

import os
from importlib import import_module
from pathlib import Path
from typing import Any, Optional

import typer

from retailpulse.config import load_settings
from retailpulse.errors import RetailPulseError
from retailpulse.stores.directory import StoreDirectory

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
STORE_MASTER_ENV = "RETAILPULSE_STORE_MASTER_PATH"

app = typer.Typer(
    name="retailpulse",
    help="Operations for the RetailPulse store visit image service.",
    no_args_is_help=True,
)


def _load_uvicorn() -> Any:
    """Dynamically import uvicorn to keep it optional for non-web commands."""

    return import_module("uvicorn")


def _fail(exc: RetailPulseError) -> None:
    typer.echo(f"{exc.heading}: {exc}", err=True)
    raise typer.Exit(code=int(exc.exit_code))


@app.command()
def serve(
    host: str = typer.Option(
        DEFAULT_HOST,
        "--host",
        "-h",
        help="Host interface to bind the API server to.",
        show_default=True,
    ),
    port: int = typer.Option(
        DEFAULT_PORT,
        "--port",
        "-p",
        min=1,
        max=65535,
        help="Port to expose the API on.",
        show_default=True,
    ),
    reload: bool = typer.Option(
        False,
        "--reload/--no-reload",
        help="Automatically reload when source files change.",
        show_default=True,
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Log level passed to uvicorn.",
        show_default=True,
    ),
    store_master: Optional[Path] = typer.Option(
        None,
        "--store-master",
        exists=True,
        dir_okay=False,
        help="CSV store master to load instead of the built-in stores.",
    ),
) -> None:
    """Launch the job submission API using uvicorn."""

    if store_master is not None:
        os.environ[STORE_MASTER_ENV] = str(store_master)
    try:
        load_settings()
    except RetailPulseError as exc:
        _fail(exc)

    typer.echo(f"Starting RetailPulse API on http://{host}:{port}")
    uvicorn = _load_uvicorn()
    uvicorn.run(
        "retailpulse.web.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@app.command()
def stores(
    store_master: Optional[Path] = typer.Option(
        None,
        "--store-master",
        dir_okay=False,
        help="CSV store master to list instead of the configured one.",
    ),
) -> None:
    """List the stores known to the service."""

    try:
        path = store_master or load_settings().store_master_path
        directory = (
            StoreDirectory.from_csv(path) if path is not None else StoreDirectory.default()
        )
    except RetailPulseError as exc:
        _fail(exc)
        return

    for store in directory:
        typer.echo(f"{store.store_id}\t{store.store_name}\t{store.area_code}")
    typer.echo(f"{len(directory)} store(s)")
