"""TypedDicts for orchestrator results, statistics, events, and API responses."""

from __future__ import annotations

from typing import TypedDict

from mothtrap.types.core import ISOTimestamp


class WatchResult(TypedDict):
    """Result of ``toggle_watch()``."""

    is_watching: bool
    watchers_count: int


class EventRecord(TypedDict):
    """Row from the events table (SELECT * FROM events)."""

    id: int
    bug_id: str
    event_type: str
    actor: str
    old_value: str | None
    new_value: str | None
    created_at: ISOTimestamp


class SlimBug(TypedDict):
    """Reduced bug shape for recent-bug lists."""

    id: str
    title: str
    status: str
    priority: str
    reporter: str
    created_at: ISOTimestamp


class AggregateResult(TypedDict):
    """Grouped totals returned by ``aggregate()``."""

    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


class StatsResult(AggregateResult):
    """Grouped totals plus the actor-scoped counts from ``get_statistics()``."""

    overdue: int
    mine: int
    recent: list[SlimBug]


class ErrorBody(TypedDict):
    message: str
    code: str
    details: dict[str, object]


class ErrorResponse(TypedDict):
    """Standard error envelope returned by the HTTP layer."""

    error: ErrorBody
