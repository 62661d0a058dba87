"""Shared validation functions for all entry points.

Pure functions, no FastAPI or Click dependencies. Payload validators raise
``ValidationFailedError``; ``sanitize_username`` keeps the (value, error)
tuple shape so CLI and HTTP callers can format the message themselves.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from mothtrap.errors import ValidationFailedError
from mothtrap.types.core import StepRecord
from mothtrap.workflow import PRIORITIES, STATUSES

_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,30}$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_RESULT_LENGTH = 1000
MAX_COMMENT_LENGTH = 1000
MAX_NAME_LENGTH = 50

SEVERITIES: tuple[str, ...] = ("minor", "major", "critical", "blocker")
CATEGORIES: tuple[str, ...] = ("bug", "feature", "enhancement", "task")
ENVIRONMENTS: tuple[str, ...] = ("development", "staging", "production")

BUG_DEFAULTS: Mapping[str, str] = {
    "priority": "medium",
    "severity": "major",
    "category": "bug",
    "environment": "development",
}

_CHOICES: Mapping[str, tuple[str, ...]] = {
    "status": STATUSES,
    "priority": PRIORITIES,
    "severity": SEVERITIES,
    "category": CATEGORIES,
    "environment": ENVIRONMENTS,
}


def sanitize_username(value: Any) -> tuple[str, str | None]:
    """Validate and clean a username.

    Returns (cleaned, None) on success or ("", error_message) on failure.
    """
    if not isinstance(value, str):
        return ("", "username must be a string")
    # Reject "\nbad" rather than silently absorbing the newline via strip().
    for ch in value:
        if unicodedata.category(ch).startswith("C"):
            return ("", f"username must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "username must not be empty")
    if not _USERNAME_PATTERN.match(cleaned):
        return ("", "username must be 3-30 characters of letters, numbers, underscores, or hyphens")
    return (cleaned, None)


def validate_text(value: Any, name: str, *, max_length: int, required: bool = False, strip: bool = True) -> str:
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationFailedError(f"{name} must be a string", field=name)
    cleaned = value.strip() if strip else value
    if required and not cleaned.strip():
        raise ValidationFailedError(f"{name} is required", field=name)
    if len(cleaned) > max_length:
        raise ValidationFailedError(f"{name} cannot exceed {max_length} characters", field=name)
    return cleaned


def validate_choice(value: Any, name: str) -> str:
    choices = _CHOICES[name]
    if value not in choices:
        raise ValidationFailedError(f"Invalid {name} {value!r}. Must be one of: {', '.join(choices)}", field=name)
    return str(value)


def validate_hours(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationFailedError(f"{name} must be a number of hours", field=name)
    if value < 0:
        raise ValidationFailedError(f"{name} cannot be negative", field=name)
    return float(value)


def parse_due_date(value: Any) -> str | None:
    """Normalize a due date to an ISO-8601 UTC timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationFailedError(f"Invalid due_date {value!r}: expected an ISO-8601 date", field="due_date") from None
    else:
        raise ValidationFailedError("due_date must be an ISO-8601 string", field="due_date")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def normalize_tags(value: Any) -> list[str]:
    """Trim, lowercase, and dedupe tags, preserving first-seen order."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise ValidationFailedError("tags must be a list of strings", field="tags")
    seen: dict[str, None] = {}
    for tag in value:
        cleaned = tag.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def normalize_steps(value: Any) -> list[StepRecord]:
    """Validate steps to reproduce and sort them by their caller-supplied order.

    Order values are kept as given, never renumbered. Ties keep input order.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationFailedError("steps_to_reproduce must be a list", field="steps_to_reproduce")
    steps: list[StepRecord] = []
    for raw in value:
        if not isinstance(raw, Mapping):
            raise ValidationFailedError("each step must be an object with 'step' and 'order'", field="steps_to_reproduce")
        text = raw.get("step")
        order = raw.get("order")
        if not isinstance(text, str) or not text.strip():
            raise ValidationFailedError("step text is required", field="steps_to_reproduce")
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValidationFailedError("step order must be an integer", field="steps_to_reproduce")
        steps.append(StepRecord(step=text.strip(), order=order))
    return sorted(steps, key=lambda s: s["order"])


def validate_comment(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationFailedError("Comment content is required", field="content")
    return validate_text(content, "content", max_length=MAX_COMMENT_LENGTH)


def validate_assignee(value: Any) -> str | None:
    """Return a user id, or None for unassigned (``None`` or an empty string)."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationFailedError("assignee must be a user id string", field="assignee")
    return value


def validate_bug_fields(fields: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
    """Validate and normalize bug fields.

    With ``partial=False`` (create), title and description are required and
    enum fields fall back to their defaults. With ``partial=True`` (update),
    only keys present in *fields* are validated and returned.
    """
    out: dict[str, Any] = {}

    def present(key: str) -> bool:
        return key in fields if partial else True

    if present("title"):
        out["title"] = validate_text(fields.get("title"), "title", max_length=MAX_TITLE_LENGTH, required=True)
    if present("description"):
        out["description"] = validate_text(
            fields.get("description"), "description", max_length=MAX_DESCRIPTION_LENGTH, required=True, strip=False
        )
    for key in ("status", "priority", "severity", "category", "environment"):
        if key == "status" and not partial:
            continue
        if partial:
            if key in fields:
                out[key] = validate_choice(fields[key], key)
        else:
            out[key] = validate_choice(fields.get(key) or BUG_DEFAULTS[key], key)
    for key in ("expected_result", "actual_result"):
        if present(key):
            out[key] = validate_text(fields.get(key), key, max_length=MAX_RESULT_LENGTH)
    if present("tags"):
        out["tags"] = normalize_tags(fields.get("tags"))
    if present("steps_to_reproduce"):
        out["steps_to_reproduce"] = normalize_steps(fields.get("steps_to_reproduce"))
    if present("due_date"):
        out["due_date"] = parse_due_date(fields.get("due_date"))
    for key in ("estimated_time", "actual_time"):
        if present(key):
            out[key] = validate_hours(fields.get(key), key)
    return out


def validate_email(value: Any) -> str:
    if not isinstance(value, str) or not _EMAIL_PATTERN.match(value.strip()):
        raise ValidationFailedError("Please provide a valid email", field="email")
    return value.strip().lower()


def validate_user_fields(fields: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
    """Validate profile fields. Username and role are handled by their own paths."""
    out: dict[str, Any] = {}
    for key in ("first_name", "last_name"):
        if not partial or key in fields:
            out[key] = validate_text(fields.get(key), key, max_length=MAX_NAME_LENGTH, required=True)
    if not partial or "email" in fields:
        out["email"] = validate_email(fields.get("email"))
    if "avatar" in fields:
        out["avatar"] = validate_text(fields.get("avatar"), "avatar", max_length=500)
    return out
