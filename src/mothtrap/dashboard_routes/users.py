"""Current-user and user administration route handlers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.requests import Request

from mothtrap.access import Actor
from mothtrap.core import MothtrapDB
from mothtrap.dashboard_routes.common import _error_response, _parse_bool_value, _parse_json_body

logger = logging.getLogger(__name__)


def create_router() -> APIRouter:
    """Build the APIRouter for ``/auth/me`` and ``/users`` endpoints."""
    from mothtrap.dashboard import _get_actor, _get_db

    router = APIRouter()

    @router.get("/auth/me")
    async def api_me(db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.get_user(actor, actor.id).to_dict())

    @router.patch("/auth/me")
    async def api_update_me(
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        return JSONResponse(db.update_user(actor, actor.id, body).to_dict())

    @router.get("/users")
    async def api_list_users(
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        params = request.query_params
        include_inactive = False
        if "include_inactive" in params:
            parsed = _parse_bool_value(params["include_inactive"], "include_inactive")
            if isinstance(parsed, JSONResponse):
                return parsed
            include_inactive = parsed
        users = db.list_users(actor, role=params.get("role") or None, include_inactive=include_inactive)
        return JSONResponse([u.to_dict() for u in users])

    @router.get("/users/{user_id}")
    async def api_user_detail(user_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.get_user(actor, user_id).to_dict())

    @router.patch("/users/{user_id}/role")
    async def api_set_role(
        user_id: str,
        request: Request,
        db: MothtrapDB = Depends(_get_db),
        actor: Actor = Depends(_get_actor),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        if "role" not in body:
            return _error_response("role is required", "VALIDATION_ERROR", 400, {"field": "role"})
        return JSONResponse(db.set_role(actor, user_id, body["role"]).to_dict())

    @router.post("/users/{user_id}/deactivate")
    async def api_deactivate(user_id: str, db: MothtrapDB = Depends(_get_db), actor: Actor = Depends(_get_actor)) -> JSONResponse:
        return JSONResponse(db.deactivate_user(actor, user_id).to_dict())

    return router
