"""Shared utilities, types, and Protocol for DB mixins."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from mothtrap.access import Actor, can_act
from mothtrap.errors import ForbiddenError

if TYPE_CHECKING:
    from mothtrap.core import Bug, User

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class DBMixinProtocol(Protocol):
    """Shared attributes and methods that DB mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.conn,
    self._load_bug(), etc. without ``type: ignore`` on every call.
    Actual implementations are provided by MothtrapDB at composition time.
    """

    db_path: Path
    prefix: str
    _conn: sqlite3.Connection | None

    @property
    def conn(self) -> sqlite3.Connection: ...

    def _load_bug(self, bug_id: str) -> Bug: ...

    def _load_user(self, user_id: str) -> User: ...

    def _user_from_row(self, row: sqlite3.Row) -> User: ...

    def _build_bugs_batch(self, bug_ids: list[str]) -> list[Bug]: ...

    def _generate_unique_id(self, table: str, infix: str = "") -> str: ...

    def _record_event(
        self,
        bug_id: str,
        event_type: str,
        *,
        actor: str = "",
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> None: ...


@contextlib.contextmanager
def write_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run one read-modify-write under ``BEGIN IMMEDIATE``.

    Reads issued inside the block see the state the writes will be applied
    to. Commits on success; rolls back and re-raises on any exception.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def _require(actor: Actor, kind: str, resource: object, action: str, *, target: str = "") -> None:
    """Raise ForbiddenError unless ``can_act`` allows the action."""
    if can_act(actor, kind, resource, action):
        return
    logger.warning(
        "Denied %s %s on %s",
        action,
        kind,
        target,
        extra={"actor": actor.id, "action": f"{kind}.{action}", "bug_id": target if kind == "bug" else None},
    )
    msg = f"{actor.role} '{actor.username or actor.id}' may not {action} {kind} {target}".rstrip()
    raise ForbiddenError(msg, action=action, actor_id=actor.id)
