"""Fixtures for core engine tests."""

from __future__ import annotations

import pytest

from mothtrap.core import Bug, MothtrapDB
from tests._db_factory import Team


@pytest.fixture
def bug(db: MothtrapDB, team: Team) -> Bug:
    """An open bug reported by the reporter-role user, unassigned."""
    return db.create_bug(
        team.actor("reporter"),
        title="Login button does nothing",
        description="Clicking login on the landing page has no effect.",
        priority="high",
    )
