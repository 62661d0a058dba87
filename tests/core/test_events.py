"""Tests for the per-bug event history."""

from __future__ import annotations

import pytest

from mothtrap.core import Bug, MothtrapDB
from mothtrap.errors import InvalidTransitionError
from tests._db_factory import Team


class TestEventHistory:
    def test_created_event(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        events = db.get_bug_events(team.actor("dev"), bug.id)
        assert len(events) == 1
        assert events[0]["event_type"] == "created"
        assert events[0]["actor"] == team.reporter.id

    def test_newest_first(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        actor = team.actor("reporter")
        db.update_bug(actor, bug.id, {"status": "in-progress"})
        db.add_comment(actor, bug.id, "note")
        types = [e["event_type"] for e in db.get_bug_events(actor, bug.id)]
        assert types == ["commented", "status_changed", "created"]

    def test_tracked_field_events(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        actor = team.actor("reporter")
        db.update_bug(actor, bug.id, {"title": "Renamed", "priority": "low", "severity": "minor", "tags": ["ui"]})
        events = {e["event_type"]: e for e in db.get_bug_events(actor, bug.id)}
        assert events["title_changed"]["old_value"] == bug.title
        assert events["title_changed"]["new_value"] == "Renamed"
        assert (events["priority_changed"]["old_value"], events["priority_changed"]["new_value"]) == ("high", "low")
        assert events["fields_updated"]["new_value"] == "severity,tags"

    def test_unchanged_values_record_nothing(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.update_bug(team.actor("reporter"), bug.id, {"title": bug.title, "priority": bug.priority})
        assert len(db.get_bug_events(team.actor("reporter"), bug.id)) == 1

    def test_rejected_mutation_leaves_no_event(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        with pytest.raises(InvalidTransitionError):
            db.update_bug(team.actor("reporter"), bug.id, {"status": "resolved"})
        assert len(db.get_bug_events(team.actor("reporter"), bug.id)) == 1

    def test_limit(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        for i in range(5):
            db.add_comment(team.actor("dev"), bug.id, f"c{i}")
        assert len(db.get_bug_events(team.actor("dev"), bug.id, limit=3)) == 3

    def test_unknown_event_type(self, db: MothtrapDB, bug: Bug) -> None:
        with pytest.raises(ValueError, match="Unknown event type"):
            db._record_event(bug.id, "exploded")


class TestStatusHistory:
    def test_oldest_first(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        actor = team.actor("reporter")
        for status in ("in-progress", "testing", "open"):
            db.update_bug(actor, bug.id, {"status": status})
        history = db.get_status_history(actor, bug.id)
        assert [(e["old_value"], e["new_value"]) for e in history] == [
            ("open", "in-progress"),
            ("in-progress", "testing"),
            ("testing", "open"),
        ]

    def test_every_recorded_change_is_legal(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        from mothtrap.workflow import is_legal_transition

        actor = team.actor("admin")
        for status in ("closed", "open", "in-progress", "closed", "open", "in-progress", "testing", "resolved", "open"):
            db.update_bug(actor, bug.id, {"status": status})
        for event in db.get_status_history(actor, bug.id):
            assert is_legal_transition(event["old_value"] or "", event["new_value"] or "")
