"""Command-line interface for Satsuma.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the public directory.
- serve: Run the development server with incremental rebuilds and live reload.
- clean: Empty the public directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import click

from . import __version__
from .errors import SatsumaError
from .logging import configure_logging


def _fail(exc: SatsumaError) -> NoReturn:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  Error: {exc}", fg="red"), err=True)
    raise SystemExit(1) from None


@click.group()
@click.version_option(version=__version__, prog_name="satsuma")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Satsuma incremental static site builder."""
    configure_logging(verbose=verbose)


@cli.command()
@click.option("--no-clean", is_flag=True, help="Keep existing files in the public directory")
def build(no_clean: bool):
    """Build the site into the public directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        result = build_site(project_root, clean=not no_clean)
    except SatsumaError as exc:
        _fail(exc)
    click.echo(
        f"Built {len(result.pages)} pages into {result.output_dir} "
        f"({len(result.changed)} outputs changed)"
    )


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides satsuma.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides satsuma.yaml ws_port)",
)
def serve(port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
    except SatsumaError as exc:
        _fail(exc)
    server.start()


@cli.command()
def clean():
    """Remove everything inside the public directory."""
    project_root = Path.cwd()
    from .build import clean_public

    try:
        result = clean_public(project_root)
    except SatsumaError as exc:
        _fail(exc)
    click.echo(f"Removed {len(result.changed)} entries")


def main():
    cli()
