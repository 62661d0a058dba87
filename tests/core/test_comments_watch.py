"""Tests for comments (append-only, ordered) and the watcher toggle."""

from __future__ import annotations

import pytest

from mothtrap.core import Bug, MothtrapDB
from mothtrap.errors import NotFoundError, ValidationFailedError
from tests._db_factory import Team


class TestComments:
    def test_comments_keep_insertion_order(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.add_comment(team.actor("reporter"), bug.id, "first")
        db.add_comment(team.actor("dev"), bug.id, "second")
        db.add_comment(team.actor("admin"), bug.id, "third")
        comments = db.get_comments(team.actor("reporter2"), bug.id)
        assert [c["content"] for c in comments] == ["first", "second", "third"]
        assert [c["author"] for c in comments] == [team.reporter.id, team.dev.id, team.admin.id]

    def test_author_is_actor(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        record = db.add_comment(team.actor("reporter2"), bug.id, "me too")
        assert record["author"] == team.reporter2.id
        assert isinstance(record["id"], int)

    def test_any_user_may_comment(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        for name in ("reporter", "reporter2", "dev", "dev2", "admin"):
            db.add_comment(team.actor(name), bug.id, f"from {name}")
        assert len(db.get_comments(team.actor("dev"), bug.id)) == 5

    def test_content_trimmed(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        record = db.add_comment(team.actor("dev"), bug.id, "  padded  ")
        assert record["content"] == "padded"

    @pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
    def test_invalid_content(self, db: MothtrapDB, team: Team, bug: Bug, content: str) -> None:
        with pytest.raises(ValidationFailedError):
            db.add_comment(team.actor("dev"), bug.id, content)
        assert db.get_comments(team.actor("dev"), bug.id) == []

    def test_comment_on_missing_bug(self, db: MothtrapDB, team: Team) -> None:
        with pytest.raises(NotFoundError):
            db.add_comment(team.actor("dev"), "test-missing", "hello")

    def test_comments_on_bug(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.add_comment(team.actor("dev"), bug.id, "one")
        fetched = db.get_bug(team.actor("dev"), bug.id)
        assert [c["content"] for c in fetched.comments] == ["one"]

    def test_comment_does_not_change_status(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.add_comment(team.actor("dev"), bug.id, "note")
        assert db.get_bug(team.actor("dev"), bug.id).status == "open"


class TestWatch:
    def test_toggle_on_and_off(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        actor = team.actor("dev")
        assert db.toggle_watch(actor, bug.id) == {"is_watching": True, "watchers_count": 1}
        assert db.toggle_watch(actor, bug.id) == {"is_watching": False, "watchers_count": 0}

    def test_double_toggle_restores_set(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.toggle_watch(team.actor("reporter"), bug.id)
        before = db.get_watchers(team.actor("dev"), bug.id)
        db.toggle_watch(team.actor("dev"), bug.id)
        db.toggle_watch(team.actor("dev"), bug.id)
        assert db.get_watchers(team.actor("dev"), bug.id) == before

    def test_count_never_exceeds_distinct_watchers(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        names = ("reporter", "dev", "dev", "admin", "dev", "reporter2")
        for name in names:
            result = db.toggle_watch(team.actor(name), bug.id)
            assert result["watchers_count"] <= len(set(names))
        watchers = db.get_watchers(team.actor("dev"), bug.id)
        assert len(watchers) == len(set(watchers))
        assert set(watchers) == {team.reporter.id, team.dev.id, team.admin.id, team.reporter2.id}

    def test_watch_missing_bug(self, db: MothtrapDB, team: Team) -> None:
        with pytest.raises(NotFoundError):
            db.toggle_watch(team.actor("dev"), "test-missing")

    def test_watch_events(self, db: MothtrapDB, team: Team, bug: Bug) -> None:
        db.toggle_watch(team.actor("dev"), bug.id)
        db.toggle_watch(team.actor("dev"), bug.id)
        types = [e["event_type"] for e in db.get_bug_events(team.actor("dev"), bug.id)]
        assert types[:2] == ["watch_stopped", "watch_started"]
