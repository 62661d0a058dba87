"""Bug statistics: grouped totals plus actor-scoped counts.

Separate module from core, operates on MothtrapDB read-only. Results reflect
the store at read time; no snapshot is held across the individual queries.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from mothtrap.access import Actor
from mothtrap.core import MothtrapDB
from mothtrap.db_base import _require
from mothtrap.types.api import AggregateResult, SlimBug, StatsResult
from mothtrap.workflow import DONE_STATUSES, PRIORITIES, STATUSES

RECENT_LIMIT = 5


def _field(bug: Any, name: str) -> Any:
    if isinstance(bug, Mapping):
        return bug.get(name)
    return getattr(bug, name, None)


def aggregate(bugs: Iterable[Any]) -> AggregateResult:
    """Count bugs by status and priority in one pass.

    Accepts ``Bug`` objects or bug dicts. Every known status and priority key
    is present in the result, zero-filled. Values outside the vocabularies
    still count toward ``total`` but not toward either breakdown.
    """
    by_status = dict.fromkeys(STATUSES, 0)
    by_priority = dict.fromkeys(PRIORITIES, 0)
    total = 0
    for bug in bugs:
        total += 1
        status = _field(bug, "status")
        if status in by_status:
            by_status[status] += 1
        priority = _field(bug, "priority")
        if priority in by_priority:
            by_priority[priority] += 1
    return {"total": total, "by_status": by_status, "by_priority": by_priority}


def _grouped_totals(db: MothtrapDB) -> AggregateResult:
    by_status = dict.fromkeys(STATUSES, 0)
    by_priority = dict.fromkeys(PRIORITIES, 0)
    total = 0
    for row in db.conn.execute("SELECT status, priority, COUNT(*) AS cnt FROM bugs GROUP BY status, priority").fetchall():
        total += row["cnt"]
        by_status[row["status"]] = by_status.get(row["status"], 0) + row["cnt"]
        by_priority[row["priority"]] = by_priority.get(row["priority"], 0) + row["cnt"]
    return {"total": total, "by_status": by_status, "by_priority": by_priority}


def overdue_count(db: MothtrapDB, now: datetime | None = None) -> int:
    """Bugs past their due date that are not yet resolved or closed."""
    done = sorted(DONE_STATUSES)
    cutoff = (now or datetime.now(UTC)).astimezone(UTC).isoformat()
    result: int = db.conn.execute(
        f"SELECT COUNT(*) FROM bugs WHERE due_date IS NOT NULL AND due_date < ? "
        f"AND status NOT IN ({','.join('?' * len(done))})",
        [cutoff, *done],
    ).fetchone()[0]
    return result


def mine_count(db: MothtrapDB, actor: Actor) -> int:
    """Bugs where *actor* is the reporter or the assignee."""
    result: int = db.conn.execute(
        "SELECT COUNT(*) FROM bugs WHERE reporter = ? OR assignee = ?",
        (actor.id, actor.id),
    ).fetchone()[0]
    return result


def recent_bugs(db: MothtrapDB, limit: int = RECENT_LIMIT) -> list[SlimBug]:
    rows = db.conn.execute(
        "SELECT id, title, status, priority, reporter, created_at FROM bugs ORDER BY created_at DESC, rowid DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [
        SlimBug(
            id=r["id"],
            title=r["title"],
            status=r["status"],
            priority=r["priority"],
            reporter=r["reporter"],
            created_at=r["created_at"],
        )
        for r in rows
    ]


def get_statistics(db: MothtrapDB, actor: Actor, *, now: datetime | None = None) -> StatsResult:
    """Dashboard numbers for *actor*: totals by status and priority, overdue, mine, recent."""
    _require(actor, "bug", None, "read")
    totals = _grouped_totals(db)
    return {
        "total": totals["total"],
        "by_status": totals["by_status"],
        "by_priority": totals["by_priority"],
        "overdue": overdue_count(db, now),
        "mine": mine_count(db, actor),
        "recent": recent_bugs(db),
    }
