"""CLI commands for user accounts: add, list, show, role, deactivate, token."""

from __future__ import annotations

import click

from mothtrap.access import ROLES
from mothtrap.cli_common import echo_json, fail, get_actor, get_db
from mothtrap.core import User
from mothtrap.errors import MothtrapError


def _print_user(user: User) -> None:
    state = "" if user.is_active else "  (deactivated)"
    click.echo(f"{user.id}  {user.username:<20} {user.role:<10} {user.full_name} <{user.email}>{state}")


@click.group("user")
def user_group() -> None:
    """Manage user accounts."""


@user_group.command("add")
@click.argument("username")
@click.option("--email", required=True, help="Email address")
@click.option("--first-name", "first_name", required=True, help="First name")
@click.option("--last-name", "last_name", required=True, help="Last name")
@click.option("--role", type=click.Choice(ROLES), default="reporter", show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def add_user(username: str, email: str, first_name: str, last_name: str, role: str, as_json: bool) -> None:
    """Create a user account (local operator, no --as needed)."""
    with get_db() as db:
        try:
            user = db.create_user(username, email, first_name, last_name, role=role)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(user.to_dict())
        else:
            click.echo(f"Created user {user.username} ({user.role}): {user.id}")


@user_group.command("list")
@click.option("--role", type=click.Choice(ROLES), default=None, help="Filter by role")
@click.option("--all", "include_inactive", is_flag=True, help="Include deactivated users")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_users(ctx: click.Context, role: str | None, include_inactive: bool, as_json: bool) -> None:
    """List users."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        users = db.list_users(actor, role=role, include_inactive=include_inactive)
        if as_json:
            echo_json([u.to_dict() for u in users])
            return
        for u in users:
            _print_user(u)


@user_group.command("show")
@click.argument("user_ref")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show_user(ctx: click.Context, user_ref: str, as_json: bool) -> None:
    """Show a user by id or username."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            user = db.get_user(actor, db.find_user(user_ref).id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(user.to_dict())
        else:
            _print_user(user)


@user_group.command("role")
@click.argument("user_ref")
@click.argument("role", type=click.Choice(ROLES))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def set_role(ctx: click.Context, user_ref: str, role: str, as_json: bool) -> None:
    """Change a user's role (admin only)."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            user = db.set_role(actor, db.find_user(user_ref).id, role)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(user.to_dict())
        else:
            click.echo(f"{user.username} is now {user.role}")


@user_group.command("deactivate")
@click.argument("user_ref")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def deactivate(ctx: click.Context, user_ref: str, as_json: bool) -> None:
    """Deactivate a user account (admin only)."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            user = db.deactivate_user(actor, db.find_user(user_ref).id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(user.to_dict())
        else:
            click.echo(f"Deactivated {user.username}")


@user_group.command("token")
@click.argument("user_ref")
@click.option("--label", default="", help="Label to remember the token by")
def issue_token(user_ref: str, label: str) -> None:
    """Mint an API token for a user. The token is shown once."""
    with get_db() as db:
        try:
            user = db.find_user(user_ref)
            token = db.issue_token(user.id, label=label)
        except MothtrapError as e:
            fail(e)
        click.echo(token)


def register(cli: click.Group) -> None:
    """Register user commands with the CLI group."""
    cli.add_command(user_group)
