"""Core database operations for the bug tracker.

Single source of truth for all SQLite operations. Both the CLI and the HTTP
API import from this module. No daemon, no sync. Just direct SQLite with
WAL mode.

The lifecycle and authorization rules live in ``workflow`` and ``access``;
the mixins composed into ``MothtrapDB`` consult them before every write.

Convention-based discovery: each project has a `.mothtrap/` directory
containing `mothtrap.db` (SQLite) and `config.json` (project prefix, paging).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from mothtrap.db_bugs import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, BugsMixin
from mothtrap.db_events import EventsMixin
from mothtrap.db_meta import MetaMixin
from mothtrap.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_SQL
from mothtrap.db_users import UsersMixin
from mothtrap.errors import NotFoundError
from mothtrap.types.core import BugDict, CommentRecord, ProjectConfig, StepRecord, UserDict
from mothtrap.workflow import DONE_STATUSES

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

MOTHTRAP_DIR_NAME = ".mothtrap"
DB_FILENAME = "mothtrap.db"
CONFIG_FILENAME = "config.json"

def find_mothtrap_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .mothtrap/ directory.

    Returns the .mothtrap/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / MOTHTRAP_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {MOTHTRAP_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(mothtrap_dir: Path) -> ProjectConfig:
    """Read .mothtrap/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(
        prefix="bug",
        version=1,
        default_page_size=DEFAULT_PAGE_SIZE,
        max_page_size=MAX_PAGE_SIZE,
    )
    config_path = mothtrap_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        loaded = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    result: ProjectConfig = {**defaults, **loaded}  # type: ignore[typeddict-item]
    return result


def write_config(mothtrap_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .mothtrap/config.json."""
    config_path = mothtrap_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def _parse_iso(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts)
    except ValueError:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Domain entities
# ---------------------------------------------------------------------------


@dataclass
class User:
    id: str
    username: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = "reporter"
    avatar: str = ""
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> UserDict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role,
            "avatar": self.avatar,
            "is_active": self.is_active,
            "created_at": self.created_at,  # type: ignore[typeddict-item]
            "updated_at": self.updated_at,  # type: ignore[typeddict-item]
        }


@dataclass
class Bug:
    id: str
    title: str
    description: str = ""
    status: str = "open"
    priority: str = "medium"
    severity: str = "major"
    category: str = "bug"
    environment: str = "development"
    reporter: str = ""
    assignee: str | None = None
    expected_result: str = ""
    actual_result: str = ""
    due_date: str | None = None
    estimated_time: float | None = None
    actual_time: float | None = None
    resolved_at: str | None = None
    closed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""
    # Stored in child tables
    steps_to_reproduce: list[StepRecord] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    comments: list[CommentRecord] = field(default_factory=list)
    watchers: list[str] = field(default_factory=list)

    def is_overdue(self, now: datetime | None = None) -> bool:
        due = _parse_iso(self.due_date)
        if due is None or self.status in DONE_STATUSES:
            return False
        return due < (now or datetime.now(UTC))

    def to_dict(self) -> BugDict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "severity": self.severity,
            "category": self.category,
            "environment": self.environment,
            "reporter": self.reporter,
            "assignee": self.assignee,
            "steps_to_reproduce": [dict(s) for s in self.steps_to_reproduce],  # type: ignore[misc]
            "expected_result": self.expected_result,
            "actual_result": self.actual_result,
            "tags": list(self.tags),
            "due_date": self.due_date,  # type: ignore[typeddict-item]
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "resolved_at": self.resolved_at,  # type: ignore[typeddict-item]
            "closed_at": self.closed_at,  # type: ignore[typeddict-item]
            "created_at": self.created_at,  # type: ignore[typeddict-item]
            "updated_at": self.updated_at,  # type: ignore[typeddict-item]
            "comments": [dict(c) for c in self.comments],  # type: ignore[misc]
            "watchers": list(self.watchers),
            "comments_count": len(self.comments),
            "watchers_count": len(self.watchers),
            "is_overdue": self.is_overdue(),
        }


# ---------------------------------------------------------------------------
# MothtrapDB: the core
# ---------------------------------------------------------------------------


class MothtrapDB(BugsMixin, MetaMixin, UsersMixin, EventsMixin):
    """Direct SQLite operations. No daemon, no sync. Importable by CLI and HTTP API."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        prefix: str = "bug",
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self.prefix = prefix
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> MothtrapDB:
        """Create a MothtrapDB by discovering .mothtrap/ from project_path (or cwd)."""
        mothtrap_dir = find_mothtrap_root(project_path)
        config = read_config(mothtrap_dir)
        db = cls(mothtrap_dir / DB_FILENAME, prefix=config.get("prefix", "bug"))
        db.initialize()
        return db

    def __enter__(self) -> MothtrapDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables for a fresh database and stamp the schema version."""
        current_version = self.get_schema_version()
        if current_version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif current_version > CURRENT_SCHEMA_VERSION:
            msg = (
                f"Database {self.db_path} is at schema v{current_version}, "
                f"newer than this mothtrap (v{CURRENT_SCHEMA_VERSION}). Upgrade mothtrap."
            )
            raise RuntimeError(msg)
        self.conn.commit()

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def reconnect(self, *, check_same_thread: bool = True) -> None:
        """Drop the current connection and reopen with new thread settings."""
        self.close()
        self._check_same_thread = check_same_thread

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _generate_unique_id(self, table: str, infix: str = "") -> str:
        """Generate a unique ID using O(1) EXISTS checks against the PK index.

        *table* is always a hardcoded literal at the call site (never user input).
        """
        sep = f"-{infix}-" if infix else "-"
        for _ in range(10):
            candidate = f"{self.prefix}{sep}{uuid.uuid4().hex[:10]}"
            if self.conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (candidate,)).fetchone() is None:
                return candidate
        return f"{self.prefix}{sep}{uuid.uuid4().hex[:16]}"

    # -- Record loading (no access checks) -----------------------------------

    def _load_bug(self, bug_id: str) -> Bug:
        bugs = self._build_bugs_batch([bug_id])
        if not bugs:
            raise NotFoundError("bug", bug_id)
        return bugs[0]

    def _load_user(self, user_id: str) -> User:
        row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFoundError("user", user_id)
        return self._user_from_row(row)

    def _build_bugs_batch(self, bug_ids: list[str]) -> list[Bug]:
        """Build multiple Bugs with batched child-table queries (avoids N+1)."""
        if not bug_ids:
            return []

        placeholders = ",".join("?" * len(bug_ids))

        rows_by_id: dict[str, sqlite3.Row] = {}
        for r in self.conn.execute(f"SELECT * FROM bugs WHERE id IN ({placeholders})", bug_ids).fetchall():
            rows_by_id[r["id"]] = r

        steps_by_id: dict[str, list[StepRecord]] = {bid: [] for bid in bug_ids}
        for r in self.conn.execute(
            f"SELECT bug_id, step, step_order FROM bug_steps WHERE bug_id IN ({placeholders}) ORDER BY bug_id, position",
            bug_ids,
        ).fetchall():
            steps_by_id[r["bug_id"]].append(StepRecord(step=r["step"], order=r["step_order"]))

        tags_by_id: dict[str, list[str]] = {bid: [] for bid in bug_ids}
        for r in self.conn.execute(
            f"SELECT bug_id, tag FROM bug_tags WHERE bug_id IN ({placeholders}) ORDER BY bug_id, position",
            bug_ids,
        ).fetchall():
            tags_by_id[r["bug_id"]].append(r["tag"])

        comments_by_id: dict[str, list[CommentRecord]] = {bid: [] for bid in bug_ids}
        for r in self.conn.execute(
            f"SELECT id, bug_id, author, content, created_at FROM comments WHERE bug_id IN ({placeholders}) ORDER BY id",
            bug_ids,
        ).fetchall():
            comments_by_id[r["bug_id"]].append(
                CommentRecord(id=r["id"], author=r["author"], content=r["content"], created_at=r["created_at"])
            )

        watchers_by_id: dict[str, list[str]] = {bid: [] for bid in bug_ids}
        for r in self.conn.execute(
            f"SELECT bug_id, user_id FROM watchers WHERE bug_id IN ({placeholders}) ORDER BY bug_id, created_at, user_id",
            bug_ids,
        ).fetchall():
            watchers_by_id[r["bug_id"]].append(r["user_id"])

        # Preserve input order
        result: list[Bug] = []
        for bid in bug_ids:
            row = rows_by_id.get(bid)
            if row is None:
                continue
            result.append(
                Bug(
                    id=row["id"],
                    title=row["title"],
                    description=row["description"],
                    status=row["status"],
                    priority=row["priority"],
                    severity=row["severity"],
                    category=row["category"],
                    environment=row["environment"],
                    reporter=row["reporter"],
                    assignee=row["assignee"],
                    expected_result=row["expected_result"] or "",
                    actual_result=row["actual_result"] or "",
                    due_date=row["due_date"],
                    estimated_time=row["estimated_time"],
                    actual_time=row["actual_time"],
                    resolved_at=row["resolved_at"],
                    closed_at=row["closed_at"],
                    created_at=row["created_at"],
                    updated_at=row["updated_at"],
                    steps_to_reproduce=steps_by_id.get(bid, []),
                    tags=tags_by_id.get(bid, []),
                    comments=comments_by_id.get(bid, []),
                    watchers=watchers_by_id.get(bid, []),
                )
            )
        return result

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            role=row["role"],
            avatar=row["avatar"] or "",
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
