"""Error kinds raised by the mothtrap engine.

Each kind carries a stable ``code`` so the CLI and HTTP layers can report it
without string matching. Kinds that map naturally onto a builtin also inherit
from it (``KeyError`` for lookups, ``ValueError`` for rejected input), so
callers that only know the builtin still catch them.
"""

from __future__ import annotations

from collections.abc import Sequence


class MothtrapError(Exception):
    """Base class for every error the engine reports to a caller."""

    code = "ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return self.message


class NotFoundError(MothtrapError, KeyError):
    """A referenced bug or user does not exist."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} not found: {ident}")


class UnauthorizedError(MothtrapError):
    """No valid identity accompanies the request."""

    code = "UNAUTHORIZED"


class ForbiddenError(MothtrapError):
    """An identity is present but the action is denied."""

    code = "FORBIDDEN"

    def __init__(self, message: str, *, action: str = "", actor_id: str = "") -> None:
        self.action = action
        self.actor_id = actor_id
        super().__init__(message)


class InvalidTransitionError(MothtrapError, ValueError):
    """A requested status change is not an edge of the lifecycle graph."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, valid: Sequence[str] = ()) -> None:
        self.from_status = from_status
        self.to_status = to_status
        self.valid = tuple(valid)
        hint = f" Valid next statuses: {', '.join(self.valid)}." if self.valid else ""
        super().__init__(f"Invalid status transition from '{from_status}' to '{to_status}'.{hint}")


class InvalidAssigneeError(MothtrapError, ValueError):
    """The assignment target does not hold an assignable role."""

    code = "INVALID_ASSIGNEE"


class ValidationFailedError(MothtrapError, ValueError):
    """Input is malformed or a required field is missing."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)
