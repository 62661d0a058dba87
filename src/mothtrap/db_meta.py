"""MetaMixin: comments and watchers.

Both are open to any authenticated actor: the only check is the ``read``
entry of the access table, which every identity passes.
"""

from __future__ import annotations

import logging
from typing import cast

from mothtrap.access import Actor
from mothtrap.db_base import DBMixinProtocol, _now_iso, _require, write_transaction
from mothtrap.types.api import WatchResult
from mothtrap.types.core import CommentRecord
from mothtrap.validation import validate_comment

logger = logging.getLogger(__name__)


class MetaMixin(DBMixinProtocol):
    """Append-only comments and the watcher set.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MothtrapDB`` at composition time via MRO.
    """

    # -- Comments ------------------------------------------------------------

    def add_comment(self, actor: Actor, bug_id: str, content: str) -> CommentRecord:
        """Append a comment authored by *actor*. Returns the stored comment."""
        with write_transaction(self.conn) as conn:
            bug = self._load_bug(bug_id)
            _require(actor, "bug", bug, "read", target=bug_id)
            text = validate_comment(content)
            now = _now_iso()
            cursor = conn.execute(
                "INSERT INTO comments (bug_id, author, content, created_at) VALUES (?, ?, ?, ?)",
                (bug_id, actor.id, text, now),
            )
            conn.execute("UPDATE bugs SET updated_at = ? WHERE id = ?", (now, bug_id))
            comment_id = cursor.lastrowid
            if comment_id is None:  # pragma: no cover
                msg = "INSERT did not produce a lastrowid"
                raise RuntimeError(msg)
            self._record_event(bug_id, "commented", actor=actor.id, new_value=str(comment_id))

        logger.info("Comment %d on %s", comment_id, bug_id, extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.comment"})
        return CommentRecord(id=comment_id, author=actor.id, content=text, created_at=now)  # type: ignore[typeddict-item]

    def get_comments(self, actor: Actor, bug_id: str) -> list[CommentRecord]:
        """Comments in insertion order, oldest first."""
        bug = self._load_bug(bug_id)
        _require(actor, "bug", bug, "read", target=bug_id)
        rows = self.conn.execute(
            "SELECT id, author, content, created_at FROM comments WHERE bug_id = ? ORDER BY id",
            (bug_id,),
        ).fetchall()
        return cast(list[CommentRecord], [dict(r) for r in rows])

    # -- Watchers ------------------------------------------------------------

    def toggle_watch(self, actor: Actor, bug_id: str) -> WatchResult:
        """Flip *actor*'s membership in the watcher set and report the new state."""
        with write_transaction(self.conn) as conn:
            bug = self._load_bug(bug_id)
            _require(actor, "bug", bug, "read", target=bug_id)
            removed = conn.execute(
                "DELETE FROM watchers WHERE bug_id = ? AND user_id = ?",
                (bug_id, actor.id),
            ).rowcount
            if removed:
                is_watching = False
                self._record_event(bug_id, "watch_stopped", actor=actor.id)
            else:
                conn.execute(
                    "INSERT OR IGNORE INTO watchers (bug_id, user_id, created_at) VALUES (?, ?, ?)",
                    (bug_id, actor.id, _now_iso()),
                )
                is_watching = True
                self._record_event(bug_id, "watch_started", actor=actor.id)
            count = conn.execute("SELECT COUNT(*) FROM watchers WHERE bug_id = ?", (bug_id,)).fetchone()[0]

        logger.info(
            "%s %s",
            "Watching" if is_watching else "Stopped watching",
            bug_id,
            extra={"bug_id": bug_id, "actor": actor.id, "action": "bug.watch"},
        )
        return {"is_watching": is_watching, "watchers_count": count}

    def get_watchers(self, actor: Actor, bug_id: str) -> list[str]:
        bug = self._load_bug(bug_id)
        _require(actor, "bug", bug, "read", target=bug_id)
        return list(bug.watchers)
