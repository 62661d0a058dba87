"""BugsMixin: the bug mutation orchestrator and bug queries.

Every mutation runs inside one ``BEGIN IMMEDIATE`` transaction and follows
the same sequence: load the current row, check the actor against the access
table, check any status change against the lifecycle graph, validate the
payload, then write. A failure at any step rolls the transaction back, so the
store is never left half-updated.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from mothtrap.access import Actor, can_assign, is_assignable
from mothtrap.db_base import DBMixinProtocol, _now_iso, _require, write_transaction
from mothtrap.errors import ForbiddenError, InvalidAssigneeError, InvalidTransitionError
from mothtrap.types.core import PaginatedResult, StepRecord
from mothtrap.validation import validate_assignee, validate_bug_fields, validate_choice
from mothtrap.workflow import (
    DONE_STATUSES,
    INITIAL_STATUS,
    PRIORITIES,
    STAMPED_STATUSES,
    STATUSES,
    is_legal_transition,
    valid_transitions,
)

if TYPE_CHECKING:
    from mothtrap.core import Bug

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# The only keys ``update_bug`` accepts. Everything else in a patch is dropped.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "severity",
        "category",
        "environment",
        "assignee",
        "steps_to_reproduce",
        "expected_result",
        "actual_result",
        "tags",
        "due_date",
        "estimated_time",
        "actual_time",
    }
)

# Columns stored directly on the bugs row (children live in their own tables).
_ROW_FIELDS = (
    "title",
    "description",
    "priority",
    "severity",
    "category",
    "environment",
    "expected_result",
    "actual_result",
    "due_date",
    "estimated_time",
    "actual_time",
)

# Fields with their own event type; the rest are rolled into ``fields_updated``.
_TRACKED_FIELDS = {"title": "title_changed", "priority": "priority_changed"}

_SORT_COLUMNS: Mapping[str, str] = {
    "created_at": "created_at",
    "updated_at": "updated_at",
    "title": "title COLLATE NOCASE",
    "priority": "CASE priority " + " ".join(f"WHEN '{p}' THEN {i}" for i, p in enumerate(PRIORITIES)) + " END",
    "status": "CASE status " + " ".join(f"WHEN '{s}' THEN {i}" for i, s in enumerate(STATUSES)) + " END",
    "due_date": "due_date",
}


def _fts_query(text: str) -> str:
    """Quote each token for FTS5 and match by prefix."""
    sanitized = re.sub(r'[^\w\s*"]', "", text)
    tokens = [t.replace('"', "") for t in sanitized.strip().split()]
    tokens = [t for t in tokens if t]
    return " AND ".join(f'"{t}"*' for t in tokens) if tokens else '""'


def _parse_sort(sort: str | None) -> str:
    """Turn ``"-priority,created_at"`` into an ORDER BY clause. Unknown keys are ignored."""
    parts: list[str] = []
    for raw in (sort or "").split(","):
        key = raw.strip()
        direction = "ASC"
        if key.startswith("-"):
            key, direction = key[1:], "DESC"
        column = _SORT_COLUMNS.get(key)
        if column is not None:
            parts.append(f"{column} {direction}")
    if not parts:
        parts.append("created_at DESC")
    parts.append("rowid DESC")
    return ", ".join(parts)


def _as_values(name: str, value: str | list[str] | tuple[str, ...]) -> list[str]:
    values = [value] if isinstance(value, str) else list(value)
    return [validate_choice(v, name) for v in values]


class BugsMixin(DBMixinProtocol):
    """Bug create/update/delete/assign plus listing and lookup.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MothtrapDB`` at composition time via MRO.
    """

    # -- Create ---------------------------------------------------------------

    def create_bug(self, actor: Actor, /, **fields: Any) -> Bug:
        """Report a new bug. The reporter is always *actor* and the status is always ``open``."""
        _require(actor, "bug", None, "create")
        clean = validate_bug_fields(fields, partial=False)
        assignee = validate_assignee(fields.get("assignee"))

        with write_transaction(self.conn) as conn:
            if assignee:
                self._check_assignment(actor, assignee, target="new bug")
            bug_id = self._generate_unique_id("bugs")
            now = _now_iso()
            conn.execute(
                "INSERT INTO bugs (id, title, description, status, priority, severity, category, environment, "
                "reporter, assignee, expected_result, actual_result, due_date, estimated_time, actual_time, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    bug_id,
                    clean["title"],
                    clean["description"],
                    INITIAL_STATUS,
                    clean["priority"],
                    clean["severity"],
                    clean["category"],
                    clean["environment"],
                    actor.id,
                    assignee,
                    clean["expected_result"],
                    clean["actual_result"],
                    clean["due_date"],
                    clean["estimated_time"],
                    clean["actual_time"],
                    now,
                    now,
                ),
            )
            self._replace_steps(bug_id, clean["steps_to_reproduce"])
            self._replace_tags(bug_id, clean["tags"])
            self._record_event(bug_id, "created", actor=actor.id, new_value=clean["title"])
            if assignee:
                self._record_event(bug_id, "assigned", actor=actor.id, new_value=assignee)

        logger.info("Created bug %s", bug_id, extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.create"})
        return self._load_bug(bug_id)

    # -- Update ---------------------------------------------------------------

    def update_bug(self, actor: Actor, bug_id: str, patch: Mapping[str, Any]) -> Bug:
        """Apply *patch* to a bug, all or nothing.

        Keys outside ``UPDATABLE_FIELDS`` (reporter, created_at, comments, ...)
        are dropped without error. A ``status`` key must name a legal move from
        the current status; repeating the current status is not one.
        """
        accepted = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}

        with write_transaction(self.conn):
            current = self._load_bug(bug_id)
            _require(actor, "bug", current, "update", target=bug_id)

            has_status = "status" in accepted
            new_status = accepted.pop("status", current.status)
            if has_status and not is_legal_transition(current.status, new_status):
                logger.warning(
                    "Rejected transition %s -> %s on %s",
                    current.status,
                    new_status,
                    bug_id,
                    extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.update"},
                )
                raise InvalidTransitionError(str(current.status), str(new_status), valid_transitions(current.status))

            has_assignee = "assignee" in accepted
            new_assignee = validate_assignee(accepted.pop("assignee", None))
            clean = validate_bug_fields(accepted, partial=True)
            if has_assignee and new_assignee != current.assignee:
                if new_assignee is None:
                    if not can_assign(actor):
                        self._deny_assignment(actor, bug_id)
                else:
                    self._check_assignment(actor, new_assignee, target=bug_id)

            changed = {k: v for k, v in clean.items() if getattr(current, k) != v}
            if has_assignee and new_assignee != current.assignee:
                changed["assignee"] = new_assignee
            if new_status != current.status:
                changed["status"] = new_status
            if not changed:
                return current

            now = _now_iso()
            columns: dict[str, Any] = {k: v for k, v in changed.items() if k in _ROW_FIELDS or k in ("status", "assignee")}
            if "status" in changed:
                stamp = STAMPED_STATUSES.get(new_status)
                if stamp is not None and getattr(current, stamp) is None:
                    columns[stamp] = now
            columns["updated_at"] = now
            sets = ", ".join(f"{col} = ?" for col in columns)
            self.conn.execute(f"UPDATE bugs SET {sets} WHERE id = ?", [*columns.values(), bug_id])

            if "steps_to_reproduce" in changed:
                self._replace_steps(bug_id, changed["steps_to_reproduce"])
            if "tags" in changed:
                self._replace_tags(bug_id, changed["tags"])

            if "status" in changed:
                self._record_event(bug_id, "status_changed", actor=actor.id, old_value=current.status, new_value=new_status)
            if "assignee" in changed:
                self._record_event(bug_id, "assigned", actor=actor.id, old_value=current.assignee, new_value=new_assignee)
            for key, event_type in _TRACKED_FIELDS.items():
                if key in changed:
                    self._record_event(bug_id, event_type, actor=actor.id, old_value=getattr(current, key), new_value=changed[key])
            rest = sorted(k for k in changed if k not in _TRACKED_FIELDS and k not in ("status", "assignee"))
            if rest:
                self._record_event(bug_id, "fields_updated", actor=actor.id, new_value=",".join(rest))

        logger.info(
            "Updated bug %s (%s)",
            bug_id,
            ", ".join(sorted(changed)),
            extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.update"},
        )
        return self._load_bug(bug_id)

    # -- Delete ---------------------------------------------------------------

    def delete_bug(self, actor: Actor, bug_id: str) -> None:
        """Remove a bug and everything hanging off it. Reporter or admin only."""
        with write_transaction(self.conn) as conn:
            current = self._load_bug(bug_id)
            _require(actor, "bug", current, "delete", target=bug_id)
            conn.execute("DELETE FROM bugs WHERE id = ?", (bug_id,))
        logger.info("Deleted bug %s", bug_id, extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.delete"})

    # -- Assign ---------------------------------------------------------------

    def assign_bug(self, actor: Actor, bug_id: str, assignee_id: str | None) -> Bug:
        """Set or clear the assignee. Developers and admins only, independent of ownership."""
        assignee_id = validate_assignee(assignee_id)
        with write_transaction(self.conn) as conn:
            current = self._load_bug(bug_id)
            if assignee_id is not None:
                self._check_assignment(actor, assignee_id, target=bug_id)
            elif not can_assign(actor):
                self._deny_assignment(actor, bug_id)
            if assignee_id == current.assignee:
                return current
            conn.execute(
                "UPDATE bugs SET assignee = ?, updated_at = ? WHERE id = ?",
                (assignee_id, _now_iso(), bug_id),
            )
            self._record_event(bug_id, "assigned", actor=actor.id, old_value=current.assignee, new_value=assignee_id)

        logger.info(
            "Assigned bug %s to %s",
            bug_id,
            assignee_id or "nobody",
            extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.assign"},
        )
        return self._load_bug(bug_id)

    def _check_assignment(self, actor: Actor, assignee_id: str, *, target: str) -> None:
        if not can_assign(actor):
            self._deny_assignment(actor, target)
        assignee = self._load_user(assignee_id)
        if not is_assignable(assignee.role):
            logger.warning(
                "Rejected assignee %s (%s) on %s",
                assignee_id,
                assignee.role,
                target,
                extra={"bug_id": target, "actor": actor.id, "action": "bug.assign"},
            )
            msg = f"Bugs can only be assigned to developers or admins; {assignee.username} is a {assignee.role}"
            raise InvalidAssigneeError(msg)

    def _deny_assignment(self, actor: Actor, target: str) -> None:
        logger.warning("Denied assign on %s", target, extra={"bug_id": target, "actor": actor.id, "action": "bug.assign"})
        msg = f"{actor.role} '{actor.username or actor.id}' may not assign bugs"
        raise ForbiddenError(msg, action="assign", actor_id=actor.id)

    # -- Child rows -------------------------------------------------------------

    def _replace_steps(self, bug_id: str, steps: list[StepRecord]) -> None:
        self.conn.execute("DELETE FROM bug_steps WHERE bug_id = ?", (bug_id,))
        self.conn.executemany(
            "INSERT INTO bug_steps (bug_id, position, step, step_order) VALUES (?, ?, ?, ?)",
            [(bug_id, i, s["step"], s["order"]) for i, s in enumerate(steps)],
        )

    def _replace_tags(self, bug_id: str, tags: list[str]) -> None:
        self.conn.execute("DELETE FROM bug_tags WHERE bug_id = ?", (bug_id,))
        self.conn.executemany(
            "INSERT INTO bug_tags (bug_id, position, tag) VALUES (?, ?, ?)",
            [(bug_id, i, t) for i, t in enumerate(tags)],
        )

    # -- Reads ----------------------------------------------------------------

    def get_bug(self, actor: Actor, bug_id: str) -> Bug:
        bug = self._load_bug(bug_id)
        _require(actor, "bug", bug, "read", target=bug_id)
        return bug

    def get_valid_transitions(self, actor: Actor, bug_id: str) -> tuple[str, ...]:
        """Statuses the bug may move to next, in lifecycle order."""
        bug = self.get_bug(actor, bug_id)
        return valid_transitions(bug.status)

    def list_bugs(
        self,
        actor: Actor,
        *,
        status: str | list[str] | None = None,
        priority: str | list[str] | None = None,
        severity: str | list[str] | None = None,
        category: str | list[str] | None = None,
        environment: str | list[str] | None = None,
        assignee: str | None = None,
        reporter: str | None = None,
        search: str | None = None,
        overdue: bool = False,
        sort: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> PaginatedResult:
        _require(actor, "bug", None, "read")
        if limit <= 0:
            limit = DEFAULT_PAGE_SIZE
        limit = min(limit, MAX_PAGE_SIZE)
        offset = max(offset, 0)

        conditions: list[str] = []
        params: list[Any] = []
        choices = {"status": status, "priority": priority, "severity": severity, "category": category, "environment": environment}
        for name, value in choices.items():
            if value is None or value == []:
                continue
            values = _as_values(name, value)
            conditions.append(f"{name} IN ({','.join('?' * len(values))})")
            params.extend(values)
        if assignee is not None:
            conditions.append("assignee = ?")
            params.append(assignee)
        if reporter is not None:
            conditions.append("reporter = ?")
            params.append(reporter)
        if overdue:
            done = sorted(DONE_STATUSES)
            conditions.append(f"due_date IS NOT NULL AND due_date < ? AND status NOT IN ({','.join('?' * len(done))})")
            params.extend([datetime.now(UTC).isoformat(), *done])
        if search:
            conditions.append("rowid IN (SELECT rowid FROM bugs_fts WHERE bugs_fts MATCH ?)")
            params.append(_fts_query(search))

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        try:
            total = self.conn.execute(f"SELECT COUNT(*) FROM bugs{where}", params).fetchone()[0]
            rows = self.conn.execute(
                f"SELECT id FROM bugs{where} ORDER BY {_parse_sort(sort)} LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        except sqlite3.OperationalError as exc:
            if not search or "fts5" not in str(exc).lower():
                raise
            logger.warning("Search query %r rejected by FTS5: %s", search, exc)
            total, rows = 0, []

        bugs = self._build_bugs_batch([r["id"] for r in rows])
        return {
            "results": [b.to_dict() for b in bugs],  # type: ignore[misc]
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(bugs) < total,
        }

    def my_assigned_bugs(self, actor: Actor) -> list[Bug]:
        rows = self.conn.execute(
            "SELECT id FROM bugs WHERE assignee = ? ORDER BY updated_at DESC, rowid DESC",
            (actor.id,),
        ).fetchall()
        return self._build_bugs_batch([r["id"] for r in rows])

    def my_reported_bugs(self, actor: Actor) -> list[Bug]:
        rows = self.conn.execute(
            "SELECT id FROM bugs WHERE reporter = ? ORDER BY created_at DESC, rowid DESC",
            (actor.id,),
        ).fetchall()
        return self._build_bugs_batch([r["id"] for r in rows])

