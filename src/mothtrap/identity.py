"""Identity providers: turn a credential into a verified ``Actor``.

The engine never checks credentials itself. The HTTP layer verifies bearer
tokens with ``TokenIdentityProvider``; the CLI trusts the local operator and
resolves a username with ``LocalIdentityProvider``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from mothtrap.access import Actor
from mothtrap.errors import NotFoundError, UnauthorizedError

if TYPE_CHECKING:
    from mothtrap.core import MothtrapDB, User

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


class IdentityProvider(Protocol):
    def verify(self, credential: str | None) -> Actor: ...


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, username=user.username)


def parse_bearer(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not header or not header.lower().startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


class TokenIdentityProvider:
    """Verify API tokens minted by ``MothtrapDB.issue_token``."""

    def __init__(self, db: MothtrapDB) -> None:
        self._db = db

    def verify(self, credential: str | None) -> Actor:
        if not credential:
            raise UnauthorizedError("Access denied. No token provided.")
        user = self._db.resolve_token(credential)
        if user is None:
            logger.warning("Rejected unknown API token")
            raise UnauthorizedError("Invalid token.")
        if not user.is_active:
            logger.warning("Rejected token for deactivated user %s", user.id, extra={"actor": user.id})
            raise UnauthorizedError("Account is deactivated.")
        return actor_for(user)


class LocalIdentityProvider:
    """Resolve a username for the local CLI. No secret is involved."""

    def __init__(self, db: MothtrapDB) -> None:
        self._db = db

    def verify(self, credential: str | None) -> Actor:
        if not credential:
            raise UnauthorizedError("No user given. Pass --as USER or set MOTHTRAP_USER.")
        try:
            user = self._db.get_user_by_username(credential)
        except NotFoundError:
            raise UnauthorizedError(f"Unknown user: {credential}") from None
        if not user.is_active:
            raise UnauthorizedError(f"User {credential} is deactivated")
        return actor_for(user)
