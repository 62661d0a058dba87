# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin, to keep imports acyclic.
"""Typed return-value contracts for mothtrap core and API layers."""

from __future__ import annotations

from mothtrap.types.api import (
    AggregateResult,
    ErrorResponse,
    EventRecord,
    SlimBug,
    StatsResult,
    WatchResult,
)
from mothtrap.types.core import (
    BugDict,
    CommentRecord,
    ISOTimestamp,
    PaginatedResult,
    ProjectConfig,
    StepRecord,
    UserDict,
)

__all__ = [
    "AggregateResult",
    "BugDict",
    "CommentRecord",
    "ErrorResponse",
    "EventRecord",
    "ISOTimestamp",
    "PaginatedResult",
    "ProjectConfig",
    "SlimBug",
    "StatsResult",
    "StepRecord",
    "UserDict",
    "WatchResult",
]
