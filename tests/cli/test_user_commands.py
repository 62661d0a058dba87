"""CLI tests for user commands (add, list, show, role, deactivate, token)."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from mothtrap.cli import cli
from mothtrap.core import MothtrapDB


class TestUserAdd:
    def test_add_json(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(
            cli,
            ["user", "add", "zoe", "--email", "zoe@example.com", "--first-name", "Zoe", "--last-name", "Z", "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["username"] == "zoe"
        assert data["role"] == "reporter"

    def test_add_duplicate(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(
            cli,
            ["user", "add", "rita", "--email", "new@example.com", "--first-name", "R", "--last-name", "R"],
        )
        assert result.exit_code == 1
        assert "Username already taken" in result.output

    def test_add_bad_role(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(
            cli,
            ["user", "add", "zoe", "--email", "z@example.com", "--first-name", "Z", "--last-name", "Z", "--role", "owner"],
        )
        assert result.exit_code == 2


class TestUserQueries:
    def test_list(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "rita", "user", "list", "--role", "developer", "--json"])
        assert result.exit_code == 0
        assert [u["username"] for u in json.loads(result.output)] == ["dana", "devon"]

    def test_show_by_username(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "rita", "user", "show", "ada"])
        assert result.exit_code == 0
        assert "admin" in result.output
        assert "<ada@example.com>" in result.output

    def test_show_missing(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "rita", "user", "show", "ghost"])
        assert result.exit_code == 1
        assert "User not found: ghost" in result.output


class TestUserAdmin:
    def test_admin_changes_role(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "ada", "user", "role", "rita", "developer"])
        assert result.exit_code == 0
        assert "rita is now developer" in result.output

    def test_developer_cannot_change_role(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "dana", "user", "role", "dana", "admin", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.output)["code"] == "FORBIDDEN"

    def test_deactivate_blocks_cli_identity(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--as", "ada", "user", "deactivate", "ray"])
        assert result.exit_code == 0
        assert "Deactivated ray" in result.output
        result = runner.invoke(cli, ["--as", "ray", "list"])
        assert result.exit_code == 1
        assert "deactivated" in result.output
        result = runner.invoke(cli, ["--as", "ada", "user", "list", "--all"])
        assert "(deactivated)" in result.output

    def test_token_resolves_to_user(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, project = cli_in_project
        result = runner.invoke(cli, ["user", "token", "dana", "--label", "ci"])
        assert result.exit_code == 0
        token = result.output.strip()
        with MothtrapDB.from_project(project) as db:
            user = db.resolve_token(token)
        assert user is not None
        assert user.username == "dana"

    def test_token_unknown_user(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["user", "token", "ghost"])
        assert result.exit_code == 1
