"""Shared pytest fixtures for mothtrap tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from mothtrap.core import DB_FILENAME, MOTHTRAP_DIR_NAME, MothtrapDB, write_config
from tests._db_factory import Team, make_db, make_team


@pytest.fixture
def db(tmp_path: Path) -> Generator[MothtrapDB, None, None]:
    """Fresh MothtrapDB for each test."""
    d = make_db(tmp_path)
    yield d
    d.close()


@pytest.fixture
def team(db: MothtrapDB) -> Team:
    """Users for every role, created in ``db``."""
    return make_team(db)


@pytest.fixture
def mothtrap_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a mothtrap project (.mothtrap/ with config + db).

    Returns the project root (parent of .mothtrap/).
    """
    mothtrap_dir = tmp_path / MOTHTRAP_DIR_NAME
    mothtrap_dir.mkdir()
    write_config(mothtrap_dir, {"prefix": "proj", "version": 1})

    d = MothtrapDB(mothtrap_dir / DB_FILENAME, prefix="proj")
    d.initialize()
    d.close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
