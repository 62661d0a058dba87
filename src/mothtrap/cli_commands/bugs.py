"""CLI commands for bugs: create, show, list, update, delete, assign, comment, watch, history, stats."""

from __future__ import annotations

from typing import Any

import click

from mothtrap.analytics import get_statistics
from mothtrap.cli_common import echo_json, fail, get_actor, get_db
from mothtrap.core import MothtrapDB
from mothtrap.errors import MothtrapError
from mothtrap.validation import CATEGORIES, ENVIRONMENTS, SEVERITIES
from mothtrap.workflow import PRIORITIES, STATUSES


def resolve_user_id(db: MothtrapDB, ref: str) -> str:
    """Accept either a user id or a username."""
    return db.find_user(ref).id


@click.command()
@click.argument("title")
@click.option("--description", "-d", required=True, help="What goes wrong")
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), default="medium", show_default=True)
@click.option("--severity", type=click.Choice(SEVERITIES), default="major", show_default=True)
@click.option("--category", type=click.Choice(CATEGORIES), default="bug", show_default=True)
@click.option("--environment", type=click.Choice(ENVIRONMENTS), default="development", show_default=True)
@click.option("--step", "-s", multiple=True, help="Step to reproduce (repeatable, in order)")
@click.option("--expected", default="", help="Expected result")
@click.option("--actual", default="", help="Actual result")
@click.option("--tag", "-t", multiple=True, help="Tag (repeatable)")
@click.option("--due", default=None, help="Due date (ISO-8601)")
@click.option("--estimate", type=float, default=None, help="Estimated hours")
@click.option("--assignee", default=None, help="Assignee id or username")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    description: str,
    priority: str,
    severity: str,
    category: str,
    environment: str,
    step: tuple[str, ...],
    expected: str,
    actual: str,
    tag: tuple[str, ...],
    due: str | None,
    estimate: float | None,
    assignee: str | None,
    as_json: bool,
) -> None:
    """Report a new bug."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            bug = db.create_bug(
                actor,
                title=title,
                description=description,
                priority=priority,
                severity=severity,
                category=category,
                environment=environment,
                steps_to_reproduce=[{"step": s, "order": i} for i, s in enumerate(step, start=1)],
                expected_result=expected,
                actual_result=actual,
                tags=list(tag),
                due_date=due,
                estimated_time=estimate,
                assignee=resolve_user_id(db, assignee) if assignee else None,
            )
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(bug.to_dict())
        else:
            click.echo(f"Created {bug.id}: {bug.title}")


@click.command()
@click.argument("bug_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, bug_id: str, as_json: bool) -> None:
    """Show bug details."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            bug = db.get_bug(actor, bug_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)

        if as_json:
            echo_json(bug.to_dict())
            return

        click.echo(f"ID:          {bug.id}")
        click.echo(f"Title:       {bug.title}")
        click.echo(f"Status:      {bug.status}")
        click.echo(f"Priority:    {bug.priority}")
        click.echo(f"Severity:    {bug.severity}")
        click.echo(f"Category:    {bug.category}")
        click.echo(f"Environment: {bug.environment}")
        click.echo(f"Reporter:    {bug.reporter}")
        if bug.assignee:
            click.echo(f"Assignee:    {bug.assignee}")
        click.echo(f"Created:     {bug.created_at}")
        if bug.due_date:
            overdue = " (OVERDUE)" if bug.is_overdue() else ""
            click.echo(f"Due:         {bug.due_date}{overdue}")
        if bug.resolved_at:
            click.echo(f"Resolved:    {bug.resolved_at}")
        if bug.closed_at:
            click.echo(f"Closed:      {bug.closed_at}")
        if bug.tags:
            click.echo(f"Tags:        {', '.join(bug.tags)}")
        if bug.watchers:
            click.echo(f"Watchers:    {len(bug.watchers)}")
        click.echo(f"\n--- Description ---\n{bug.description}")
        if bug.steps_to_reproduce:
            click.echo("\n--- Steps to reproduce ---")
            for s in bug.steps_to_reproduce:
                click.echo(f"  {s['order']}. {s['step']}")
        if bug.expected_result:
            click.echo(f"\nExpected: {bug.expected_result}")
        if bug.actual_result:
            click.echo(f"Actual:   {bug.actual_result}")
        if bug.comments:
            click.echo(f"\n--- Comments ({len(bug.comments)}) ---")
            for c in bug.comments:
                click.echo(f"  [{c['created_at']}] {c['author']}: {c['content']}")


@click.command("list")
@click.option("--status", multiple=True, type=click.Choice(STATUSES), help="Filter by status (repeatable)")
@click.option("--priority", "-p", multiple=True, type=click.Choice(PRIORITIES), help="Filter by priority (repeatable)")
@click.option("--severity", multiple=True, type=click.Choice(SEVERITIES), help="Filter by severity (repeatable)")
@click.option("--category", multiple=True, type=click.Choice(CATEGORIES), help="Filter by category (repeatable)")
@click.option("--environment", multiple=True, type=click.Choice(ENVIRONMENTS), help="Filter by environment (repeatable)")
@click.option("--assignee", default=None, help="Filter by assignee id or username")
@click.option("--reporter", default=None, help="Filter by reporter id or username")
@click.option("--search", "-q", default=None, help="Full-text search over title and description")
@click.option("--overdue", is_flag=True, help="Only bugs past their due date")
@click.option("--sort", default=None, help="Sort keys, e.g. -priority,created_at")
@click.option("--limit", default=10, type=int, help="Max results (default 10)")
@click.option("--offset", default=0, type=int, help="Skip first N results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_bugs(
    ctx: click.Context,
    status: tuple[str, ...],
    priority: tuple[str, ...],
    severity: tuple[str, ...],
    category: tuple[str, ...],
    environment: tuple[str, ...],
    assignee: str | None,
    reporter: str | None,
    search: str | None,
    overdue: bool,
    sort: str | None,
    limit: int,
    offset: int,
    as_json: bool,
) -> None:
    """List bugs."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            result = db.list_bugs(
                actor,
                status=list(status) or None,
                priority=list(priority) or None,
                severity=list(severity) or None,
                category=list(category) or None,
                environment=list(environment) or None,
                assignee=resolve_user_id(db, assignee) if assignee else None,
                reporter=resolve_user_id(db, reporter) if reporter else None,
                search=search,
                overdue=overdue,
                sort=sort,
                limit=limit,
                offset=offset,
            )
        except MothtrapError as e:
            fail(e, as_json=as_json)

        if as_json:
            echo_json(result)
            return
        for b in result["results"]:
            assigned = f" -> {b['assignee']}" if b["assignee"] else ""
            click.echo(f"{b['id']}  [{b['status']}] {b['priority']:<8} {b['title']}{assigned}")
        shown = len(result["results"])
        click.echo(f"\n{shown} of {result['total']} bug(s)")
        if result["has_more"]:
            click.echo(f"More available: --offset {result['offset'] + shown}")


@click.command()
@click.argument("bug_id")
@click.option("--title", default=None, help="New title")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--status", default=None, help="New status (must be a legal transition)")
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), default=None)
@click.option("--severity", type=click.Choice(SEVERITIES), default=None)
@click.option("--category", type=click.Choice(CATEGORIES), default=None)
@click.option("--environment", type=click.Choice(ENVIRONMENTS), default=None)
@click.option("--expected", default=None, help="Expected result")
@click.option("--actual", default=None, help="Actual result")
@click.option("--tag", "-t", multiple=True, help="Replace tags (repeatable)")
@click.option("--due", default=None, help="Due date (ISO-8601, empty string clears)")
@click.option("--estimate", type=float, default=None, help="Estimated hours")
@click.option("--time-spent", "time_spent", type=float, default=None, help="Actual hours spent")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    bug_id: str,
    title: str | None,
    description: str | None,
    status: str | None,
    priority: str | None,
    severity: str | None,
    category: str | None,
    environment: str | None,
    expected: str | None,
    actual: str | None,
    tag: tuple[str, ...],
    due: str | None,
    estimate: float | None,
    time_spent: float | None,
    as_json: bool,
) -> None:
    """Update a bug. A status change must follow the lifecycle."""
    candidates: dict[str, Any] = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "severity": severity,
        "category": category,
        "environment": environment,
        "expected_result": expected,
        "actual_result": actual,
        "due_date": due,
        "estimated_time": estimate,
        "actual_time": time_spent,
    }
    patch = {k: v for k, v in candidates.items() if v is not None}
    if tag:
        patch["tags"] = list(tag)
    if not patch:
        fail("Nothing to update", as_json=as_json)

    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            bug = db.update_bug(actor, bug_id, patch)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(bug.to_dict())
        else:
            click.echo(f"Updated {bug.id} [{bug.status}]: {bug.title}")


@click.command()
@click.argument("bug_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def delete(ctx: click.Context, bug_id: str, as_json: bool) -> None:
    """Delete a bug (reporter or admin only)."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            db.delete_bug(actor, bug_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json({"deleted": True, "id": bug_id})
        else:
            click.echo(f"Deleted {bug_id}")


@click.command()
@click.argument("bug_id")
@click.argument("assignee", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def assign(ctx: click.Context, bug_id: str, assignee: str | None, as_json: bool) -> None:
    """Assign a bug to a developer or admin. Omit ASSIGNEE to unassign."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            assignee_id = resolve_user_id(db, assignee) if assignee else None
            bug = db.assign_bug(actor, bug_id, assignee_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(bug.to_dict())
        elif bug.assignee:
            click.echo(f"Assigned {bug.id} to {bug.assignee}")
        else:
            click.echo(f"Unassigned {bug.id}")


@click.command()
@click.argument("bug_id")
@click.argument("text")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def comment(ctx: click.Context, bug_id: str, text: str, as_json: bool) -> None:
    """Add a comment to a bug."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            record = db.add_comment(actor, bug_id, text)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(record)
        else:
            click.echo(f"Added comment {record['id']} to {bug_id}")


@click.command()
@click.argument("bug_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def comments(ctx: click.Context, bug_id: str, as_json: bool) -> None:
    """List comments on a bug, oldest first."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            records = db.get_comments(actor, bug_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(records)
            return
        if not records:
            click.echo("No comments.")
            return
        for c in records:
            click.echo(f"[{c['created_at']}] {c['author']}: {c['content']}")


@click.command()
@click.argument("bug_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def watch(ctx: click.Context, bug_id: str, as_json: bool) -> None:
    """Start or stop watching a bug."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            result = db.toggle_watch(actor, bug_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(result)
        else:
            state = "Watching" if result["is_watching"] else "Stopped watching"
            click.echo(f"{state} {bug_id} ({result['watchers_count']} watcher(s))")


@click.command()
@click.argument("bug_id")
@click.option("--limit", default=50, type=int, help="Max events (default 50)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def history(ctx: click.Context, bug_id: str, limit: int, as_json: bool) -> None:
    """Show the change history of a bug, newest first."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            events = db.get_bug_events(actor, bug_id, limit=limit)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(events)
            return
        for ev in events:
            change = ""
            if ev["old_value"] is not None or ev["new_value"] is not None:
                change = f" {ev['old_value'] or '-'} -> {ev['new_value'] or '-'}"
            click.echo(f"{ev['created_at']}  {ev['event_type']:<16} {ev['actor']}{change}")


@click.command()
@click.argument("bug_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def transitions(ctx: click.Context, bug_id: str, as_json: bool) -> None:
    """Show the statuses a bug may move to next."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            bug = db.get_bug(actor, bug_id)
            targets = db.get_valid_transitions(actor, bug_id)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json({"status": bug.status, "transitions": list(targets)})
            return
        click.echo(f"{bug.id} is {bug.status}")
        for t in targets:
            click.echo(f"  -> {t}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, as_json: bool) -> None:
    """Show bug statistics."""
    with get_db() as db:
        actor = get_actor(ctx, db, as_json=as_json)
        try:
            result = get_statistics(db, actor)
        except MothtrapError as e:
            fail(e, as_json=as_json)
        if as_json:
            echo_json(result)
            return
        click.echo(f"Total:   {result['total']}")
        click.echo(f"Overdue: {result['overdue']}")
        click.echo(f"Mine:    {result['mine']}")
        click.echo("\nBy status:")
        for status, count in result["by_status"].items():
            click.echo(f"  {status:<12} {count}")
        click.echo("\nBy priority:")
        for priority, count in result["by_priority"].items():
            click.echo(f"  {priority:<12} {count}")
        if result["recent"]:
            click.echo("\nRecent:")
            for b in result["recent"]:
                click.echo(f"  {b['id']}  [{b['status']}] {b['title']}")


def register(cli: click.Group) -> None:
    """Register bug commands with the CLI group."""
    cli.add_command(create)
    cli.add_command(show)
    cli.add_command(list_bugs)
    cli.add_command(update)
    cli.add_command(delete)
    cli.add_command(assign)
    cli.add_command(comment)
    cli.add_command(comments)
    cli.add_command(watch)
    cli.add_command(history)
    cli.add_command(transitions)
    cli.add_command(stats)
