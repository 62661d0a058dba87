"""EventsMixin: the per-bug history of committed mutations.

Events are written inside the same transaction as the change they describe,
so a rolled-back mutation never leaves a history row behind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from mothtrap.access import Actor
from mothtrap.db_base import DBMixinProtocol, _now_iso, _require
from mothtrap.types.api import EventRecord

if TYPE_CHECKING:
    from mothtrap.core import Bug

EVENT_TYPES: frozenset[str] = frozenset(
    {
        "created",
        "status_changed",
        "title_changed",
        "priority_changed",
        "assigned",
        "commented",
        "watch_started",
        "watch_stopped",
        "fields_updated",
    }
)


class EventsMixin(DBMixinProtocol):
    """Event recording and history reads.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MothtrapDB`` at composition time via MRO.
    """

    def _record_event(
        self,
        bug_id: str,
        event_type: str,
        *,
        actor: str = "",
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> None:
        if event_type not in EVENT_TYPES:
            msg = f"Unknown event type: {event_type}"
            raise ValueError(msg)
        self.conn.execute(
            "INSERT INTO events (bug_id, event_type, actor, old_value, new_value, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (bug_id, event_type, actor, old_value, new_value, _now_iso()),
        )

    def get_bug_events(self, actor: Actor, bug_id: str, *, limit: int = 50) -> list[EventRecord]:
        """Status history and other changes for one bug, newest first."""
        bug: Bug = self._load_bug(bug_id)
        _require(actor, "bug", bug, "read", target=bug_id)
        rows = self.conn.execute(
            "SELECT * FROM events WHERE bug_id = ? ORDER BY id DESC LIMIT ?",
            (bug_id, limit),
        ).fetchall()
        return cast(list[EventRecord], [dict(r) for r in rows])

    def get_status_history(self, actor: Actor, bug_id: str) -> list[EventRecord]:
        """Only the ``status_changed`` events for a bug, oldest first."""
        bug: Bug = self._load_bug(bug_id)
        _require(actor, "bug", bug, "read", target=bug_id)
        rows = self.conn.execute(
            "SELECT * FROM events WHERE bug_id = ? AND event_type = 'status_changed' ORDER BY id",
            (bug_id,),
        ).fetchall()
        return cast(list[EventRecord], [dict(r) for r in rows])
