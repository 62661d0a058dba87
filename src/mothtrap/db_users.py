"""UsersMixin: accounts, roles, and API tokens.

Profile edits go through the ``user`` rows of the access table: anyone may
read, a user may update their own profile, and only an admin may change a
role or deactivate an account.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import sqlite3
from typing import TYPE_CHECKING, Any

from mothtrap.access import ROLES, Actor, is_assignable
from mothtrap.db_base import DBMixinProtocol, _now_iso, _require, write_transaction
from mothtrap.errors import NotFoundError, ValidationFailedError
from mothtrap.validation import sanitize_username, validate_user_fields

if TYPE_CHECKING:
    from mothtrap.core import User

logger = logging.getLogger(__name__)

# Keys a user may change on their own profile.
PROFILE_FIELDS: frozenset[str] = frozenset({"first_name", "last_name", "email", "avatar"})


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _validate_role(role: Any) -> str:
    if role not in ROLES:
        raise ValidationFailedError(f"Invalid role {role!r}. Must be one of: {', '.join(ROLES)}", field="role")
    return str(role)


class UsersMixin(DBMixinProtocol):
    """User CRUD, role management, and token issuance.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MothtrapDB`` at composition time via MRO.
    """

    # -- Bootstrap (operator path, no actor) ---------------------------------

    def create_user(
        self,
        username: str,
        email: str,
        first_name: str,
        last_name: str,
        *,
        role: str = "reporter",
        avatar: str = "",
    ) -> User:
        cleaned, err = sanitize_username(username)
        if err:
            raise ValidationFailedError(err, field="username")
        fields = validate_user_fields(
            {"first_name": first_name, "last_name": last_name, "email": email, "avatar": avatar},
            partial=False,
        )
        role = _validate_role(role)
        user_id = self._generate_unique_id("users", "u")
        now = _now_iso()
        try:
            with write_transaction(self.conn) as conn:
                conn.execute(
                    "INSERT INTO users (id, username, email, first_name, last_name, role, avatar, is_active, "
                    "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)",
                    (
                        user_id,
                        cleaned,
                        fields["email"],
                        fields["first_name"],
                        fields["last_name"],
                        role,
                        fields.get("avatar", ""),
                        now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ValidationFailedError(_uniqueness_message(exc), field=_uniqueness_field(exc)) from exc
        logger.info("Created user %s (%s)", cleaned, role, extra={"action": "user.create"})
        return self._load_user(user_id)

    # -- Reads ----------------------------------------------------------------

    def get_user(self, actor: Actor, user_id: str) -> User:
        user = self._load_user(user_id)
        _require(actor, "user", user, "read", target=user_id)
        return user

    def get_user_by_username(self, username: str) -> User:
        row = self.conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        if row is None:
            raise NotFoundError("user", username)
        return self._user_from_row(row)

    def find_user(self, ref: str) -> User:
        """Look up a user by id, falling back to username."""
        try:
            return self._load_user(ref)
        except NotFoundError:
            return self.get_user_by_username(ref)

    def list_users(self, actor: Actor, *, role: str | None = None, include_inactive: bool = False) -> list[User]:
        _require(actor, "user", None, "read")
        clauses: list[str] = []
        params: list[Any] = []
        if role is not None:
            clauses.append("role = ?")
            params.append(_validate_role(role))
        if not include_inactive:
            clauses.append("is_active = 1")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(f"SELECT * FROM users{where} ORDER BY username", params).fetchall()
        return [self._user_from_row(r) for r in rows]

    # -- Mutations ------------------------------------------------------------

    def update_user(self, actor: Actor, user_id: str, fields: dict[str, Any]) -> User:
        """Update profile fields. Role, username, and active flag are ignored here."""
        try:
            with write_transaction(self.conn) as conn:
                user = self._load_user(user_id)
                _require(actor, "user", user, "update", target=user_id)
                patch = validate_user_fields({k: v for k, v in fields.items() if k in PROFILE_FIELDS}, partial=True)
                if not patch:
                    return user
                sets = ", ".join(f"{k} = ?" for k in patch)
                conn.execute(
                    f"UPDATE users SET {sets}, updated_at = ? WHERE id = ?",
                    [*patch.values(), _now_iso(), user_id],
                )
        except sqlite3.IntegrityError as exc:
            raise ValidationFailedError(_uniqueness_message(exc), field=_uniqueness_field(exc)) from exc
        logger.info("Updated profile %s", user_id, extra={"actor": actor.id, "action": "user.update"})
        return self._load_user(user_id)

    def set_role(self, actor: Actor, user_id: str, role: str) -> User:
        """Change a user's role. Losing the assignable roles unassigns their bugs."""
        with write_transaction(self.conn) as conn:
            user = self._load_user(user_id)
            _require(actor, "user", user, "change_role", target=user_id)
            role = _validate_role(role)
            if role == user.role:
                return user
            now = _now_iso()
            conn.execute("UPDATE users SET role = ?, updated_at = ? WHERE id = ?", (role, now, user_id))
            released: list[str] = []
            if not is_assignable(role):
                released = [r[0] for r in conn.execute("SELECT id FROM bugs WHERE assignee = ? ORDER BY id", (user_id,))]
                conn.execute("UPDATE bugs SET assignee = NULL, updated_at = ? WHERE assignee = ?", (now, user_id))
                for bug_id in released:
                    self._record_event(bug_id, "assigned", actor=actor.id, old_value=user_id, new_value=None)
        logger.info(
            "Changed role of %s: %s -> %s",
            user_id,
            user.role,
            role,
            extra={"actor": actor.id, "action": "user.change_role"},
        )
        if released:
            logger.info(
                "Unassigned %d bug(s) from %s",
                len(released),
                user_id,
                extra={"actor": actor.id, "action": "bug.assign"},
            )
        return self._load_user(user_id)

    def deactivate_user(self, actor: Actor, user_id: str) -> User:
        with write_transaction(self.conn) as conn:
            user = self._load_user(user_id)
            _require(actor, "user", user, "deactivate", target=user_id)
            if not user.is_active:
                return user
            conn.execute("UPDATE users SET is_active = 0, updated_at = ? WHERE id = ?", (_now_iso(), user_id))
        logger.info("Deactivated user %s", user_id, extra={"actor": actor.id, "action": "user.deactivate"})
        return self._load_user(user_id)

    # -- API tokens -----------------------------------------------------------

    def issue_token(self, user_id: str, *, label: str = "") -> str:
        """Mint a bearer token for *user_id*. Only its SHA-256 is stored."""
        self._load_user(user_id)
        raw = secrets.token_urlsafe(32)
        with write_transaction(self.conn) as conn:
            conn.execute(
                "INSERT INTO api_tokens (token_hash, user_id, label, created_at) VALUES (?, ?, ?, ?)",
                (_hash_token(raw), user_id, label, _now_iso()),
            )
        logger.info("Issued API token for %s", user_id, extra={"action": "user.token"})
        return raw

    def resolve_token(self, raw: str) -> User | None:
        """Return the user owning *raw*, or None if the token is unknown."""
        row = self.conn.execute(
            "SELECT u.* FROM api_tokens t JOIN users u ON u.id = t.user_id WHERE t.token_hash = ?",
            (_hash_token(raw),),
        ).fetchone()
        return self._user_from_row(row) if row is not None else None


def _uniqueness_field(exc: sqlite3.IntegrityError) -> str | None:
    text = str(exc)
    if "users.username" in text:
        return "username"
    if "users.email" in text:
        return "email"
    return None


def _uniqueness_message(exc: sqlite3.IntegrityError) -> str:
    field = _uniqueness_field(exc)
    if field == "username":
        return "Username already taken"
    if field == "email":
        return "Email already registered"
    return f"Could not save user: {exc}"
