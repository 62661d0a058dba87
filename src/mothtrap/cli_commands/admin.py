"""CLI commands for project setup and serving: init, serve."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from mothtrap.core import (
    CONFIG_FILENAME,
    DB_FILENAME,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MOTHTRAP_DIR_NAME,
    MothtrapDB,
    read_config,
    write_config,
)


@click.command()
@click.option("--prefix", default=None, help="ID prefix for bugs (default: bug)")
@click.option("--name", default=None, help="Project name (default: directory name)")
def init(prefix: str | None, name: str | None) -> None:
    """Initialize .mothtrap/ in the current directory."""
    cwd = Path.cwd()
    mothtrap_dir = cwd / MOTHTRAP_DIR_NAME

    if mothtrap_dir.exists():
        click.echo(f"{MOTHTRAP_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(mothtrap_dir)
        db = MothtrapDB(mothtrap_dir / DB_FILENAME, prefix=config.get("prefix", "bug"))
        db.initialize()
        db.close()
        return

    prefix = prefix or "bug"
    mothtrap_dir.mkdir()
    write_config(
        mothtrap_dir,
        {
            "prefix": prefix,
            "name": name or cwd.name,
            "version": 1,
            "default_page_size": DEFAULT_PAGE_SIZE,
            "max_page_size": MAX_PAGE_SIZE,
        },
    )

    db = MothtrapDB(mothtrap_dir / DB_FILENAME, prefix=prefix)
    db.initialize()
    db.close()

    click.echo(f"Initialized {MOTHTRAP_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix:   {prefix}")
    click.echo(f"  Config:   {mothtrap_dir / CONFIG_FILENAME}")
    click.echo(f"  Database: {mothtrap_dir / DB_FILENAME}")
    click.echo("\nNext: mothtrap user add <username> --email ... --first-name ... --last-name ... --role admin")


@click.command()
@click.option("--port", default=None, type=int, help="Port (default: $MOTHTRAP_PORT or 8377)")
def serve(port: int | None) -> None:
    """Serve the HTTP API for this project."""
    try:
        from mothtrap.dashboard import main as api_main
    except ImportError:
        click.echo("The HTTP API needs fastapi and uvicorn. Install with: pip install mothtrap", err=True)
        sys.exit(1)
    api_main(port=port)


def register(cli: click.Group) -> None:
    """Register admin commands with the CLI group."""
    cli.add_command(init)
    cli.add_command(serve)
