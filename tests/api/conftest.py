"""Fixtures for HTTP API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

import mothtrap.dashboard as dash_module
from mothtrap.core import MothtrapDB
from mothtrap.dashboard import create_app
from tests._db_factory import Team, make_db, make_team


@dataclass
class ApiProject:
    db: MothtrapDB
    team: Team
    tokens: dict[str, str]

    def auth(self, name: str) -> dict[str, str]:
        """Authorization header for the team member *name* (``reporter``, ``dev``, ...)."""
        return {"Authorization": f"Bearer {self.tokens[name]}"}


@pytest.fixture
def api_project(tmp_path: Path) -> Generator[ApiProject, None, None]:
    """DB with one user per role and an API token for each.

    Opened with check_same_thread=False so the ASGI app can share the
    connection with the test.
    """
    db = make_db(tmp_path, check_same_thread=False)
    team = make_team(db)
    tokens = {name: db.issue_token(getattr(team, name).id) for name in ("admin", "dev", "dev2", "reporter", "reporter2")}
    yield ApiProject(db=db, team=team, tokens=tokens)
    db.close()


@pytest.fixture
async def client(api_project: ApiProject) -> AsyncIterator[AsyncClient]:
    """Create a test client backed by the project DB."""
    dash_module._db = api_project.db
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._db = None
