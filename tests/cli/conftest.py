"""Fixtures for CLI interface tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from mothtrap.cli import cli

# (username, role) seeded into every CLI test project.
USERS = (
    ("ada", "admin"),
    ("dana", "developer"),
    ("devon", "developer"),
    ("rita", "reporter"),
    ("ray", "reporter"),
)


@pytest.fixture
def cli_in_project(
    tmp_path: Path, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a mothtrap project in tmp_path with one user per role and return (runner, project_root)."""
    monkeypatch.delenv("MOTHTRAP_USER", raising=False)
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init", "--prefix", "test"])
    assert result.exit_code == 0
    for username, role in USERS:
        result = cli_runner.invoke(
            cli,
            ["user", "add", username, "--email", f"{username}@example.com", "--first-name", username.title(), "--last-name", "T", "--role", role],
        )
        assert result.exit_code == 0, result.output
    yield cli_runner, tmp_path
    os.chdir(original_cwd)


def _extract_id(create_output: str) -> str:
    """Extract bug ID from 'Created test-abc123: Title' output."""
    return create_output.split(":")[0].replace("Created ", "").strip()


def create_bug(runner: CliRunner, title: str = "Login broken", *, user: str = "rita", extra: list[str] | None = None) -> str:
    result = runner.invoke(cli, ["--as", user, "create", title, "-d", "Steps unclear", *(extra or [])])
    assert result.exit_code == 0, result.output
    return _extract_id(result.output)
