# src/mothtrap/workflow.py
"""Bug lifecycle -- the status vocabulary and the legal transition graph.

The graph is fixed and directed. There are no implicit self-loops, and a bug
reopened from ``resolved`` or ``closed`` always restarts at ``open``::

    open        -> in-progress, closed
    in-progress -> testing, open, closed
    testing     -> resolved, in-progress, open
    resolved    -> closed, open
    closed      -> open

Pure functions only -- no DB, FastAPI, or Click dependencies.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Literal

Status = Literal["open", "in-progress", "testing", "resolved", "closed"]
Priority = Literal["low", "medium", "high", "critical"]

STATUSES: tuple[str, ...] = ("open", "in-progress", "testing", "resolved", "closed")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")

INITIAL_STATUS: Status = "open"

# Statuses whose first arrival stamps a timestamp column on the bug.
STAMPED_STATUSES: MappingProxyType[str, str] = MappingProxyType(
    {
        "resolved": "resolved_at",
        "closed": "closed_at",
    }
)

# Bugs in these statuses no longer count as overdue.
DONE_STATUSES: frozenset[str] = frozenset({"resolved", "closed"})

TRANSITIONS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "open": ("in-progress", "closed"),
        "in-progress": ("testing", "open", "closed"),
        "testing": ("resolved", "in-progress", "open"),
        "resolved": ("closed", "open"),
        "closed": ("open",),
    }
)


def is_legal_transition(from_status: str, to_status: str) -> bool:
    """Return True only when ``from_status -> to_status`` is an edge of the graph.

    Total over all inputs: unknown values on either side and ``from == to``
    are illegal.
    """
    return to_status in TRANSITIONS.get(from_status, ())


def valid_transitions(status: str) -> tuple[str, ...]:
    """Legal next statuses from *status*, in table order. Empty for unknown statuses."""
    return TRANSITIONS.get(status, ())


def is_done(status: str) -> bool:
    return status in DONE_STATUSES
