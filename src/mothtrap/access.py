"""Access control -- who may do what to which resource.

Decisions come from one table keyed by ``(resource_kind, action)``. Each entry
is a predicate over the acting identity and the resource facts the caller
passes in. A pair with no entry is denied. Admins short-circuit every lookup.

Pure functions -- no DB, FastAPI, or Click dependencies. Callers must load
the resource (reporter, assignee, target id) before asking.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, Protocol

Role = Literal["reporter", "developer", "admin"]
ResourceKind = Literal["bug", "user"]
Action = Literal["read", "create", "update", "delete", "change_role", "deactivate"]

ROLES: tuple[str, ...] = ("reporter", "developer", "admin")
ADMIN_ROLE = "admin"

# Roles allowed to perform an assignment, and roles allowed to receive one.
ASSIGNER_ROLES: frozenset[str] = frozenset({"developer", "admin"})
ASSIGNABLE_ROLES: frozenset[str] = frozenset({"developer", "admin"})


@dataclass(frozen=True)
class Actor:
    """Verified identity attached to a request."""

    id: str
    role: str
    username: str = ""


class BugFacts(Protocol):
    @property
    def reporter(self) -> str: ...

    @property
    def assignee(self) -> str | None: ...


class UserFacts(Protocol):
    @property
    def id(self) -> str: ...


Rule = Callable[[Actor, Any], bool]


def _anyone(actor: Actor, resource: Any) -> bool:
    return True


def _nobody(actor: Actor, resource: Any) -> bool:
    return False


def _roles(*roles: str) -> Rule:
    allowed = frozenset(roles)

    def rule(actor: Actor, resource: Any) -> bool:
        return actor.role in allowed

    return rule


def _is_reporter(actor: Actor, bug: BugFacts) -> bool:
    return bug is not None and actor.id == bug.reporter


def _is_reporter_or_assignee(actor: Actor, bug: BugFacts) -> bool:
    if bug is None:
        return False
    return actor.id == bug.reporter or (bug.assignee is not None and actor.id == bug.assignee)


def _is_self(actor: Actor, target: UserFacts) -> bool:
    return target is not None and actor.id == target.id


DECISION_TABLE: Mapping[tuple[str, str], Rule] = MappingProxyType(
    {
        ("bug", "read"): _anyone,
        ("bug", "create"): _roles("reporter", "developer"),
        ("bug", "update"): _is_reporter_or_assignee,
        ("bug", "delete"): _is_reporter,
        ("user", "read"): _anyone,
        ("user", "update"): _is_self,
        ("user", "delete"): _nobody,
    }
)


def can_act(actor: Actor, resource_kind: str, resource: Any, action: str) -> bool:
    """Decide whether *actor* may perform *action* on *resource*.

    Rules, in priority order:
      1. admin -> always permitted
      2. (kind, action) listed in DECISION_TABLE -> that entry's predicate
      3. anything else, including unknown kinds -> denied
    """
    if actor.role == ADMIN_ROLE:
        return True
    rule = DECISION_TABLE.get((resource_kind, action))
    if rule is None:
        return False
    return rule(actor, resource)


def can_assign(actor: Actor) -> bool:
    """Assignment is its own action, independent of bug ownership."""
    return actor.role in ASSIGNER_ROLES


def is_assignable(role: str) -> bool:
    return role in ASSIGNABLE_ROLES
