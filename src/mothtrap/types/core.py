"""Foundational TypedDicts for dataclass to_dict() returns and DB row shapes."""

from __future__ import annotations

from typing import Any, NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .mothtrap/config.json."""

    prefix: str
    name: str
    version: int
    default_page_size: int
    max_page_size: int


class PaginatedResult(TypedDict):
    """Envelope returned by paginated query methods."""

    results: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
    has_more: bool


class StepRecord(TypedDict):
    step: str
    order: int


class CommentRecord(TypedDict):
    """Row from the comments table, oldest first."""

    id: int
    author: str
    content: str
    created_at: ISOTimestamp


class BugDict(TypedDict):
    id: str
    title: str
    description: str
    status: str
    priority: str
    severity: str
    category: str
    environment: str
    reporter: str
    assignee: str | None
    steps_to_reproduce: list[StepRecord]
    expected_result: str
    actual_result: str
    tags: list[str]
    due_date: ISOTimestamp | None
    estimated_time: float | None
    actual_time: float | None
    resolved_at: ISOTimestamp | None
    closed_at: ISOTimestamp | None
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    comments: list[CommentRecord]
    watchers: list[str]
    comments_count: int
    watchers_count: int
    is_overdue: bool


class UserDict(TypedDict):
    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    avatar: str
    is_active: bool
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
