"""Shared helpers and constants for API route modules."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from mothtrap.db_bugs import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from mothtrap.errors import (
    ForbiddenError,
    InvalidTransitionError,
    MothtrapError,
    NotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ERROR_STATUS: dict[str, int] = {
    "NOT_FOUND": 404,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "INVALID_TRANSITION": 409,
    "INVALID_ASSIGNEE": 400,
    "VALIDATION_ERROR": 400,
}

_BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off"})

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
        headers=headers,
    )


def _error_details(exc: MothtrapError) -> dict[str, Any]:
    if isinstance(exc, InvalidTransitionError):
        return {"from": exc.from_status, "to": exc.to_status, "valid": list(exc.valid)}
    if isinstance(exc, ValidationFailedError) and exc.field:
        return {"field": exc.field}
    if isinstance(exc, NotFoundError):
        return {"kind": exc.kind, "id": exc.ident}
    if isinstance(exc, ForbiddenError) and exc.action:
        return {"action": exc.action}
    return {}


def _domain_error(exc: MothtrapError) -> JSONResponse:
    """Map an engine error onto its HTTP status and the error envelope."""
    return _error_response(exc.message, exc.code, ERROR_STATUS.get(exc.code, 500), _error_details(exc))


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _safe_int(value: str, name: str, *, min_value: int | None = None) -> int | JSONResponse:
    """Parse a query-param string to int, returning a 400 error response on failure.

    When *min_value* is set, values below that floor are rejected with 400.
    """
    try:
        result = int(value)
    except (ValueError, TypeError):
        return _error_response(
            f'Invalid value for {name}: "{value}". Must be an integer.',
            "VALIDATION_ERROR",
            400,
            {"field": name},
        )
    if min_value is not None and result < min_value:
        return _error_response(
            f"Invalid value for {name}: {result}. Must be >= {min_value}.",
            "VALIDATION_ERROR",
            400,
            {"field": name},
        )
    return result


def _parse_pagination(params: Mapping[str, str], default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int] | JSONResponse:
    """Extract ``limit`` and ``offset`` from query params.

    ``page`` (1-based) is accepted as an alternative to ``offset``. ``limit``
    is capped at ``MAX_PAGE_SIZE``.
    """
    limit = _safe_int(params.get("limit", str(default_limit)), "limit", min_value=1)
    if not isinstance(limit, int):
        return limit
    limit = min(limit, MAX_PAGE_SIZE)
    if "page" in params:
        page = _safe_int(params["page"], "page", min_value=1)
        if not isinstance(page, int):
            return page
        return limit, (page - 1) * limit
    offset = _safe_int(params.get("offset", "0"), "offset", min_value=0)
    if not isinstance(offset, int):
        return offset
    return limit, offset


def _parse_bool_value(raw: str, name: str) -> bool | JSONResponse:
    value = raw.strip().lower()
    if value in _BOOL_TRUE_VALUES:
        return True
    if value in _BOOL_FALSE_VALUES:
        return False
    return _error_response(
        f'Invalid value for {name}: "{raw}". Must be one of true/false, 1/0, yes/no, on/off.',
        "VALIDATION_ERROR",
        400,
        {"field": name},
    )


def _multi_param(values: list[str]) -> list[str] | None:
    """Collect a repeatable query param, also splitting comma-separated values."""
    out = [v.strip() for raw in values for v in raw.split(",") if v.strip()]
    return out or None
