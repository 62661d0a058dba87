"""Tests for bug statistics: grouped totals, overdue, mine, and recent."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from mothtrap.access import Actor
from mothtrap.analytics import aggregate, get_statistics, mine_count, overdue_count, recent_bugs
from mothtrap.core import Bug, MothtrapDB
from mothtrap.errors import ForbiddenError
from tests._db_factory import Team


class TestAggregate:
    def test_example_counts(self) -> None:
        bugs = [
            {"status": "open", "priority": "high"},
            {"status": "open", "priority": "low"},
            {"status": "closed", "priority": "high"},
        ]
        result = aggregate(bugs)
        assert result["total"] == 3
        assert result["by_status"]["open"] == 2
        assert result["by_status"]["closed"] == 1
        assert result["by_priority"]["high"] == 2
        assert result["by_priority"]["low"] == 1

    def test_zero_filled(self) -> None:
        result = aggregate([])
        assert result["total"] == 0
        assert result["by_status"] == {"open": 0, "in-progress": 0, "testing": 0, "resolved": 0, "closed": 0}
        assert result["by_priority"] == {"low": 0, "medium": 0, "high": 0, "critical": 0}

    def test_accepts_bug_objects(self) -> None:
        result = aggregate([Bug(id="a", title="a", status="testing", priority="critical")])
        assert result["by_status"]["testing"] == 1
        assert result["by_priority"]["critical"] == 1

    def test_breakdowns_sum_to_total(self) -> None:
        bugs = [{"status": s, "priority": p} for s in ("open", "resolved") for p in ("low", "medium", "critical")]
        result = aggregate(bugs)
        assert sum(result["by_status"].values()) == result["total"]
        assert sum(result["by_priority"].values()) == result["total"]

    def test_unknown_values_count_only_in_total(self) -> None:
        result = aggregate([{"status": "weird", "priority": "meh"}])
        assert result["total"] == 1
        assert sum(result["by_status"].values()) == 0


class TestStatistics:
    @pytest.fixture
    def seeded(self, db: MothtrapDB, team: Team) -> list[Bug]:
        rep, dev = team.actor("reporter"), team.actor("dev")
        past = (datetime.now(UTC) - timedelta(days=1)).isoformat()
        bugs = [
            db.create_bug(rep, title="A", description="d", priority="high", due_date=past),
            db.create_bug(rep, title="B", description="d", priority="low"),
            db.create_bug(dev, title="C", description="d", priority="high", due_date=past),
        ]
        db.update_bug(dev, bugs[2].id, {"status": "closed"})
        db.assign_bug(dev, bugs[1].id, team.dev.id)
        return bugs

    def test_matches_aggregate_of_list(self, db: MothtrapDB, team: Team, seeded: list[Bug]) -> None:
        actor = team.actor("admin")
        stats = get_statistics(db, actor)
        listed = aggregate(db.list_bugs(actor, limit=100)["results"])
        assert stats["total"] == listed["total"] == 3
        assert stats["by_status"] == listed["by_status"]
        assert stats["by_priority"] == listed["by_priority"]

    def test_overdue_excludes_done(self, db: MothtrapDB, team: Team, seeded: list[Bug]) -> None:
        assert get_statistics(db, team.actor("dev"))["overdue"] == 1

    def test_mine_counts_reported_or_assigned(self, db: MothtrapDB, team: Team, seeded: list[Bug]) -> None:
        assert get_statistics(db, team.actor("reporter"))["mine"] == 2
        assert get_statistics(db, team.actor("dev"))["mine"] == 2
        assert get_statistics(db, team.actor("admin"))["mine"] == 0

    def test_recent_newest_first(self, db: MothtrapDB, team: Team, seeded: list[Bug]) -> None:
        recent = get_statistics(db, team.actor("dev"))["recent"]
        assert [b["title"] for b in recent] == ["C", "B", "A"]
        assert set(recent[0]) == {"id", "title", "status", "priority", "reporter", "created_at"}

    def test_recent_limit(self, db: MothtrapDB, team: Team) -> None:
        for i in range(7):
            db.create_bug(team.actor("dev"), title=f"bug {i}", description="d")
        assert len(recent_bugs(db)) == 5
        assert len(recent_bugs(db, limit=2)) == 2

    def test_overdue_relative_to_now(self, db: MothtrapDB, team: Team) -> None:
        db.create_bug(team.actor("dev"), title="due soon", description="d", due_date="2030-06-01")
        assert overdue_count(db, datetime(2030, 5, 1, tzinfo=UTC)) == 0
        assert overdue_count(db, datetime(2030, 7, 1, tzinfo=UTC)) == 1

    def test_mine_count_empty(self, db: MothtrapDB, team: Team) -> None:
        assert mine_count(db, team.actor("dev2")) == 0

    def test_empty_store(self, db: MothtrapDB, team: Team) -> None:
        stats = get_statistics(db, team.actor("reporter"))
        assert stats["total"] == 0
        assert stats["recent"] == []
        assert all(v == 0 for v in stats["by_status"].values())

    def test_any_identity_may_read(self, db: MothtrapDB) -> None:
        stats = get_statistics(db, Actor(id="x", role="guest"))
        assert stats["total"] == 0

    def test_statistics_requires_read(self, db: MothtrapDB, monkeypatch: pytest.MonkeyPatch) -> None:
        import mothtrap.analytics as analytics_module

        def deny(actor: Actor, kind: str, resource: object, action: str, *, target: str = "") -> None:
            raise ForbiddenError("denied", action=action, actor_id=actor.id)

        monkeypatch.setattr(analytics_module, "_require", deny)
        with pytest.raises(ForbiddenError):
            get_statistics(db, Actor(id="x", role="reporter"))
