"""HTTP API for mothtrap: bug, comment, watcher, user, and stats endpoints.

A module-level ``_db`` is set at startup and injected via
``Depends(_get_db)``. Every route also depends on ``_get_actor``, which
verifies the ``Authorization: Bearer <token>`` header against the API tokens
stored in the project database.

Usage:
    mothtrap serve                    # Serves on 127.0.0.1:8377
    mothtrap serve --port 9000        # Custom port
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse

from mothtrap.access import Actor
from mothtrap.core import DB_FILENAME, MothtrapDB, find_mothtrap_root, read_config
from mothtrap.dashboard_routes.common import _domain_error
from mothtrap.errors import MothtrapError
from mothtrap.identity import TokenIdentityProvider, parse_bearer
from mothtrap.logging import setup_logging

DEFAULT_PORT = 8377
PORT_ENV_VAR = "MOTHTRAP_PORT"

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_db: MothtrapDB | None = None


def _get_db() -> MothtrapDB:
    """Return the active database connection."""
    from fastapi import HTTPException

    if _db is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _db


async def _get_actor(request: Request) -> Actor:
    """Verify the bearer token on *request* and return the acting identity.

    Async so token lookup runs on the event loop thread with the rest of the
    handler's SQLite access.
    """
    token = parse_bearer(request.headers.get("authorization"))
    return TokenIdentityProvider(_get_db()).verify(token)


def resolve_port(port: int | None = None) -> int:
    """Explicit *port*, else ``MOTHTRAP_PORT``, else the default."""
    if port is not None:
        return port
    raw = os.environ.get(PORT_ENV_VAR, "")
    if raw:
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", PORT_ENV_VAR, raw)
    return DEFAULT_PORT


def create_app() -> Any:
    """Create the FastAPI application with all API endpoints."""
    from fastapi import FastAPI

    from mothtrap import __version__
    from mothtrap.dashboard_routes import bugs, users

    app = FastAPI(title="mothtrap", version=__version__, docs_url=None, redoc_url=None)

    @app.exception_handler(MothtrapError)
    async def _handle_domain_error(request: Request, exc: MothtrapError) -> JSONResponse:
        return _domain_error(exc)

    app.include_router(bugs.create_router(), prefix="/api")
    app.include_router(users.create_router(), prefix="/api")
    return app


def main(port: int | None = None) -> None:
    """Start the API server for the project found from the working directory."""
    import uvicorn

    global _db

    mothtrap_dir = find_mothtrap_root()
    setup_logging(mothtrap_dir)
    config = read_config(mothtrap_dir)
    _db = MothtrapDB(
        mothtrap_dir / DB_FILENAME,
        prefix=config.get("prefix", "bug"),
        check_same_thread=False,
    )
    _db.initialize()

    port = resolve_port(port)
    app = create_app()
    logger.info("Serving %s on 127.0.0.1:%d", mothtrap_dir, port)
    print(f"mothtrap API: http://localhost:{port}/api")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
