"""Bug, comment, watcher, history, and statistics route handlers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.requests import Request

from mothtrap.access import Actor, can_act
from mothtrap.analytics import get_statistics
from mothtrap.core import MothtrapDB
from mothtrap.dashboard_routes.common import (
    _error_response,
    _multi_param,
    _parse_bool_value,
    _parse_json_body,
    _parse_pagination,
)

logger = logging.getLogger(__name__)

_LIST_FILTERS = ("status", "priority", "severity", "category", "environment")

# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------


def create_router() -> APIRouter:
    """Build the APIRouter for bug endpoints.

    NOTE: All handlers are intentionally async despite doing synchronous
    SQLite I/O. This serializes DB access on the event loop thread,
    avoiding concurrent multi-thread access to the shared DB connection.
    Static paths (``/bugs/stats``, ``/bugs/my/...``) are registered before
    ``/bugs/{bug_id}`` so they are not captured as ids.
    """
    from mothtrap.dashboard import _get_actor, _get_db

    router = APIRouter()

    @router.get("/bugs")
    async def api_list_bugs(
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        params = request.query_params
        pagination = _parse_pagination(params)
        if isinstance(pagination, JSONResponse):
            return pagination
        limit, offset = pagination
        filters = {name: _multi_param(params.getlist(name)) for name in _LIST_FILTERS}
        overdue = False
        if "overdue" in params:
            parsed = _parse_bool_value(params["overdue"], "overdue")
            if isinstance(parsed, JSONResponse):
                return parsed
            overdue = parsed
        result = db.list_bugs(
            actor,
            **filters,
            assignee=params.get("assignee") or None,
            reporter=params.get("reporter") or None,
            search=params.get("search") or params.get("q") or None,
            overdue=overdue,
            sort=params.get("sort"),
            limit=limit,
            offset=offset,
        )
        return JSONResponse(result)

    @router.post("/bugs")
    async def api_create_bug(
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        bug = db.create_bug(actor, **body)
        return JSONResponse(bug.to_dict(), status_code=201)

    @router.get("/bugs/stats")
    async def api_stats(db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(get_statistics(db, actor))

    @router.get("/bugs/my/assigned")
    async def api_my_assigned(db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse([b.to_dict() for b in db.my_assigned_bugs(actor)])

    @router.get("/bugs/my/reported")
    async def api_my_reported(db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse([b.to_dict() for b in db.my_reported_bugs(actor)])

    @router.get("/bugs/{bug_id}")
    async def api_bug_detail(bug_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.get_bug(actor, bug_id).to_dict())

    @router.patch("/bugs/{bug_id}")
    async def api_update_bug(
        bug_id: str,
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        bug = db.update_bug(actor, bug_id, body)
        return JSONResponse(bug.to_dict())

    @router.delete("/bugs/{bug_id}")
    async def api_delete_bug(bug_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        db.delete_bug(actor, bug_id)
        return JSONResponse({"deleted": True, "id": bug_id})

    @router.put("/bugs/{bug_id}/assign")
    async def api_assign_bug(
        bug_id: str,
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        if "assignee" not in body:
            return _error_response("assignee is required (use null to unassign)", "VALIDATION_ERROR", 400, {"field": "assignee"})
        assignee = body["assignee"]
        if assignee is not None and not isinstance(assignee, str):
            return _error_response("assignee must be a user id or null", "VALIDATION_ERROR", 400, {"field": "assignee"})
        bug = db.assign_bug(actor, bug_id, assignee or None)
        return JSONResponse(bug.to_dict())

    @router.post("/bugs/{bug_id}/comments")
    async def api_add_comment(
        bug_id: str,
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        comment = db.add_comment(actor, bug_id, body.get("content"))  # type: ignore[arg-type]
        return JSONResponse(comment, status_code=201)

    @router.get("/bugs/{bug_id}/comments")
    async def api_get_comments(bug_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.get_comments(actor, bug_id))

    @router.post("/bugs/{bug_id}/watch")
    async def api_toggle_watch(bug_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.toggle_watch(actor, bug_id))

    @router.get("/bugs/{bug_id}/events")
    async def api_bug_events(bug_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.get_bug_events(actor, bug_id))

    @router.get("/bugs/{bug_id}/transitions")
    async def api_bug_transitions(
        bug_id: str,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        bug = db.get_bug(actor, bug_id)
        return JSONResponse(
            {
                "status": bug.status,
                "transitions": list(db.get_valid_transitions(actor, bug_id)),
                "can_update": can_act(actor, "bug", bug, "update"),
            }
        )

    return router
