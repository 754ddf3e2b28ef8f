"""Command-line interface for Quire.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site once into the output directory.
- serve: Run the development server with rebuild-on-change and live reload.

Exit codes:
- 0: success.
- 1: the build finished but at least one document failed (the others are written).
- 2: configuration or environment error (bad ``_config.yml``, version pin
  mismatch, missing source directory, port already in use).
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .errors import QuireError

EXIT_CONTENT_ERROR = 1
EXIT_ENVIRONMENT_ERROR = 2

_source_option = click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Content store root",
)
_destination_option = click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides destination in _config.yml)",
)
_drafts_option = click.option("--drafts", is_flag=True, help="Include posts from _drafts/")


@click.group()
@click.version_option(version=__version__, prog_name="quire")
def cli():
    """Quire static blog generator."""


@cli.command()
@_source_option
@_destination_option
@_drafts_option
def build(source: Path, destination: Path | None, drafts: bool):
    """Build the site into the output directory."""
    root = source.resolve()
    from .build import build_site, resolve_output_dir
    from .config import load_config
    from .tree import write_tree

    try:
        config = load_config(root)
        output_dir = resolve_output_dir(root, config, destination)
        result = build_site(root, include_drafts=drafts, config=config, output_dir=output_dir)
        write_tree(result.tree, output_dir)
    except (QuireError, OSError) as exc:
        _environment_failure(exc)

    for issue in result.issues:
        click.echo(click.style(f"  {issue.describe(root)}", fg="yellow"), err=True)
    if result.issues:
        noun = "document" if len(result.issues) == 1 else "documents"
        click.echo(
            click.style(f"Build failed: {len(result.issues)} {noun} skipped", fg="red", bold=True),
            err=True,
        )
        click.echo(f"Built {result.documents} documents into {output_dir}", err=True)
        raise SystemExit(EXIT_CONTENT_ERROR)
    click.echo(f"Built {result.documents} documents into {output_dir}")


@cli.command()
@_source_option
@_destination_option
@_drafts_option
@click.option("--host", default=None, help="Bind address (overrides host in _config.yml)")
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    required=False,
    help="Port to run the dev server (overrides port in _config.yml)",
)
@click.option(
    "--ws-port",
    type=click.IntRange(0, 65535),
    required=False,
    help="Port for the live reload websocket server (default: port + 1)",
)
@click.option(
    "--no-write",
    is_flag=True,
    help="Serve from memory only; do not write the output directory",
)
def serve(
    source: Path,
    destination: Path | None,
    drafts: bool,
    host: str | None,
    port: int | None,
    ws_port: int | None,
    no_write: bool,
):
    """Run dev server with rebuild on change and live reload."""
    root = source.resolve()
    from .server import DevServer

    try:
        server = DevServer(
            root,
            host=host,
            http_port=port,
            ws_port=ws_port,
            output_dir=destination,
            include_drafts=drafts,
            write_output=not no_write,
        )
        server.start()
    except KeyboardInterrupt:
        click.echo("Stopped.")
    except (QuireError, OSError) as exc:
        _environment_failure(exc)


def _environment_failure(exc: Exception):
    """Report a fatal error and exit with the environment error code."""
    click.echo(click.style("Error:", fg="red", bold=True) + f" {exc}", err=True)
    raise SystemExit(EXIT_ENVIRONMENT_ERROR) from None


def main():
    """Entry point for the CLI application."""
    cli()
