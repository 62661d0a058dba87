"""Tests for the shared validation module."""

from __future__ import annotations

from datetime import date

import pytest

from mothtrap.errors import ValidationFailedError
from mothtrap.validation import (
    normalize_steps,
    normalize_tags,
    parse_due_date,
    sanitize_username,
    validate_assignee,
    validate_bug_fields,
    validate_comment,
    validate_email,
    validate_hours,
    validate_text,
    validate_user_fields,
)


class TestSanitizeUsername:
    """sanitize_username() pure function tests."""

    def test_valid_simple(self) -> None:
        assert sanitize_username("alice") == ("alice", None)

    def test_strips_whitespace(self) -> None:
        assert sanitize_username("  bob_1  ") == ("bob_1", None)

    def test_too_short(self) -> None:
        cleaned, err = sanitize_username("ab")
        assert cleaned == ""
        assert err is not None
        assert "3-30" in err

    def test_empty_string(self) -> None:
        cleaned, err = sanitize_username("   ")
        assert cleaned == ""
        assert err is not None
        assert "empty" in err

    def test_control_characters(self) -> None:
        _, err = sanitize_username("bad\tname")
        assert err is not None
        assert "U+0009" in err

    def test_non_string(self) -> None:
        _, err = sanitize_username(42)
        assert err == "username must be a string"


class TestText:
    def test_required(self) -> None:
        with pytest.raises(ValidationFailedError, match="title is required"):
            validate_text("  ", "title", max_length=10, required=True)

    def test_max_length(self) -> None:
        with pytest.raises(ValidationFailedError, match="cannot exceed 5"):
            validate_text("abcdef", "name", max_length=5)

    def test_none_is_empty(self) -> None:
        assert validate_text(None, "expected_result", max_length=5) == ""

    def test_strip_off_keeps_whitespace(self) -> None:
        assert validate_text("  body\n", "description", max_length=20, strip=False) == "  body\n"

    def test_comment(self) -> None:
        assert validate_comment(" hi ") == "hi"
        with pytest.raises(ValidationFailedError):
            validate_comment(None)


class TestNumbersAndDates:
    def test_hours(self) -> None:
        assert validate_hours(3, "estimated_time") == 3.0
        assert validate_hours(None, "estimated_time") is None

    @pytest.mark.parametrize("value", [-0.5, "3", True])
    def test_bad_hours(self, value: object) -> None:
        with pytest.raises(ValidationFailedError):
            validate_hours(value, "actual_time")

    def test_due_date_with_offset(self) -> None:
        assert parse_due_date("2030-01-01T12:00:00+02:00") == "2030-01-01T10:00:00+00:00"

    def test_due_date_from_date(self) -> None:
        assert parse_due_date(date(2030, 1, 2)) == "2030-01-02T00:00:00+00:00"

    def test_due_date_empty(self) -> None:
        assert parse_due_date("") is None

    def test_due_date_garbage(self) -> None:
        with pytest.raises(ValidationFailedError, match="ISO-8601"):
            parse_due_date("soon")


class TestTagsAndSteps:
    def test_tags_deduped_in_order(self) -> None:
        assert normalize_tags(["B", "a", "b", " "]) == ["b", "a"]

    def test_tags_must_be_strings(self) -> None:
        with pytest.raises(ValidationFailedError):
            normalize_tags(["ok", 3])

    def test_steps_keep_order_values(self) -> None:
        steps = normalize_steps([{"step": "two", "order": 20}, {"step": "one", "order": 5}])
        assert steps == [{"step": "one", "order": 5}, {"step": "two", "order": 20}]

    def test_steps_ties_keep_input_order(self) -> None:
        steps = normalize_steps([{"step": "x", "order": 1}, {"step": "y", "order": 1}])
        assert [s["step"] for s in steps] == ["x", "y"]

    @pytest.mark.parametrize("raw", ["not a list", [{"step": "", "order": 1}], [{"step": "a", "order": "1"}], ["a"]])
    def test_bad_steps(self, raw: object) -> None:
        with pytest.raises(ValidationFailedError):
            normalize_steps(raw)


class TestAssignee:
    def test_user_id_passes(self) -> None:
        assert validate_assignee("test-u-abc") == "test-u-abc"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_means_unassigned(self, value: object) -> None:
        assert validate_assignee(value) is None

    @pytest.mark.parametrize("value", [["x"], 7, {"id": "x"}, True])
    def test_non_string_rejected(self, value: object) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_assignee(value)
        assert exc_info.value.field == "assignee"


class TestBugFields:
    def test_full_defaults(self) -> None:
        out = validate_bug_fields({"title": "t", "description": "d"}, partial=False)
        assert out["priority"] == "medium"
        assert out["tags"] == []
        assert out["steps_to_reproduce"] == []
        assert "status" not in out

    def test_partial_only_present_keys(self) -> None:
        assert validate_bug_fields({"priority": "low"}, partial=True) == {"priority": "low"}

    def test_partial_status_checked_against_vocabulary(self) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_bug_fields({"status": "done"}, partial=True)
        assert exc_info.value.field == "status"

    def test_description_limit(self) -> None:
        with pytest.raises(ValidationFailedError):
            validate_bug_fields({"title": "t", "description": "x" * 2001}, partial=False)


class TestUserFields:
    def test_email_lowercased(self) -> None:
        assert validate_email(" A@B.io ") == "a@b.io"

    def test_bad_email(self) -> None:
        with pytest.raises(ValidationFailedError):
            validate_email("a@b")

    def test_partial(self) -> None:
        assert validate_user_fields({"last_name": "Smith"}, partial=True) == {"last_name": "Smith"}

    def test_name_limit(self) -> None:
        with pytest.raises(ValidationFailedError):
            validate_user_fields({"first_name": "x" * 51}, partial=True)
