"""Shared CLI helpers used by ``cli.py`` and the ``cli_commands/*.py`` modules.

Provides ``get_db()``, ``get_actor()`` and ``fail()`` so command modules can
reach the project database and report errors without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from mothtrap.access import Actor
from mothtrap.core import (
    DB_FILENAME,
    MOTHTRAP_DIR_NAME,
    MothtrapDB,
    find_mothtrap_root,
    read_config,
)
from mothtrap.errors import MothtrapError, UnauthorizedError
from mothtrap.identity import LocalIdentityProvider
from mothtrap.logging import setup_logging

USER_ENV_VAR = "MOTHTRAP_USER"


def get_db() -> MothtrapDB:
    """Discover .mothtrap/ and return an initialized MothtrapDB."""
    try:
        mothtrap_dir = find_mothtrap_root()
    except FileNotFoundError:
        click.echo(f"No {MOTHTRAP_DIR_NAME}/ found. Run 'mothtrap init' first.", err=True)
        sys.exit(1)
    setup_logging(mothtrap_dir)
    config = read_config(mothtrap_dir)
    db = MothtrapDB(mothtrap_dir / DB_FILENAME, prefix=config.get("prefix", "bug"))
    db.initialize()
    return db


def get_actor(ctx: click.Context, db: MothtrapDB, *, as_json: bool = False) -> Actor:
    """Resolve the ``--as`` user (or ``MOTHTRAP_USER``) into an Actor, exiting 1 if unknown."""
    username = (ctx.obj or {}).get("user")
    try:
        return LocalIdentityProvider(db).verify(username)
    except UnauthorizedError as e:
        fail(e, as_json=as_json)


def fail(error: MothtrapError | str, *, as_json: bool = False) -> NoReturn:
    """Report *error* the way every command does and exit 1."""
    code = error.code if isinstance(error, MothtrapError) else "ERROR"
    if as_json:
        click.echo(json_mod.dumps({"error": str(error), "code": code}))
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def echo_json(data: object) -> None:
    click.echo(json_mod.dumps(data, indent=2, default=str))
