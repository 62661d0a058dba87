"""CLI for the mothtrap bug tracker.

Convention-based: discovers .mothtrap/ by walking up from cwd. Commands that
act on bugs run as the user named by ``--as`` (or ``MOTHTRAP_USER``).

Usage:
    mothtrap init                                     # Initialize .mothtrap/ in cwd
    mothtrap user add alice --email ... --role admin  # Create a user
    mothtrap --as alice create "Crash on save" -d ... # Report a bug
    mothtrap --as alice list --status open            # List bugs
    mothtrap --as bob update <id> --status in-progress
    mothtrap --as bob assign <id> bob                 # Assign to a developer
    mothtrap --as alice comment <id> "Still broken"   # Add comment
    mothtrap --as alice stats                         # Statistics
    mothtrap serve                                    # HTTP API on :8377
"""

from __future__ import annotations

import click

from mothtrap import __version__
from mothtrap.cli_commands import admin as _admin
from mothtrap.cli_commands import bugs as _bugs
from mothtrap.cli_commands import users as _users
from mothtrap.cli_common import USER_ENV_VAR


@click.group()
@click.version_option(version=__version__, prog_name="mothtrap")
@click.option("--as", "user", envvar=USER_ENV_VAR, default=None, help=f"Act as this username (env: {USER_ENV_VAR})")
@click.pass_context
def cli(ctx: click.Context, user: str | None) -> None:
    """mothtrap: bug tracker with a role-checked lifecycle."""
    ctx.ensure_object(dict)
    ctx.obj["user"] = user


_admin.register(cli)
_bugs.register(cli)
_users.register(cli)


if __name__ == "__main__":
    cli()
