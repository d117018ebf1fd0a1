"""Integration tests for CLI commands.

This module tests the Typer-based CLI: configuration loading, schema
creation against a SQLite database, and development token issuing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from sqlalchemy import create_engine, inspect
from typer.testing import CliRunner

from projectdock.integrations.auth import TokenActorResolver
from projectdock.lifecycle.permissions import Actor
from projectdock.main import app

SECRET = "cli-test-secret"


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo the logging setup done by the CLI callback."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a TOML config pointing at a SQLite database in tmp_path."""
    path = tmp_path / "projectdock.toml"
    path.write_text(
        f"""
[database]
url = "sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

[auth]
token_secret = "{SECRET}"

[logging]
level = "WARNING"
"""
    )
    return path


def _token(output: str) -> str:
    return output.strip().splitlines()[-1].strip()


class TestIssueToken:
    """Tests for the issue-token command."""

    def test_issues_resolvable_token(self, cli_runner: CliRunner, config_file: Path) -> None:
        result = cli_runner.invoke(
            app, ["--config", str(config_file), "issue-token", "alice", "programmer"]
        )

        assert result.exit_code == 0, result.output
        actor = TokenActorResolver(SECRET).resolve(_token(result.output))
        assert actor == Actor(id="alice", role="programmer", is_active=True)

    def test_inactive_flag(self, cli_runner: CliRunner, config_file: Path) -> None:
        result = cli_runner.invoke(
            app,
            ["--config", str(config_file), "issue-token", "bob", "client", "--inactive"],
        )

        assert result.exit_code == 0, result.output
        assert TokenActorResolver(SECRET).resolve(_token(result.output)).is_active is False

    def test_invalid_role(self, cli_runner: CliRunner, config_file: Path) -> None:
        result = cli_runner.invoke(
            app, ["--config", str(config_file), "issue-token", "alice", "wizard"]
        )

        assert result.exit_code == 1
        assert "Invalid role" in result.output

    def test_colon_in_user_id(self, cli_runner: CliRunner, config_file: Path) -> None:
        result = cli_runner.invoke(
            app, ["--config", str(config_file), "issue-token", "a:b", "client"]
        )

        assert result.exit_code == 1
        assert "must not contain" in result.output


class TestInitDb:
    """Tests for the init-db command."""

    def test_creates_tables(
        self, cli_runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        result = cli_runner.invoke(app, ["--config", str(config_file), "init-db"])

        assert result.exit_code == 0, result.output
        assert "Database schema is up to date" in result.output

        engine = create_engine(f"sqlite:///{tmp_path / 'cli.db'}")
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()
        assert {
            "projects",
            "project_phases",
            "project_activities",
            "analysis_previews",
        } <= tables

    def test_is_idempotent(self, cli_runner: CliRunner, config_file: Path) -> None:
        for _ in range(2):
            result = cli_runner.invoke(app, ["--config", str(config_file), "init-db"])
            assert result.exit_code == 0, result.output


class TestConfigOption:
    """Tests for configuration loading in the CLI callback."""

    def test_missing_config_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(
            app, ["--config", str(tmp_path / "absent.toml"), "issue-token", "a", "client"]
        )
        assert result.exit_code == 2

    def test_invalid_config_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text('[logging]\nlevel = "LOUD"\n')

        result = cli_runner.invoke(app, ["--config", str(path), "issue-token", "a", "client"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output

    def test_help_lists_commands(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "init-db", "issue-token"):
            assert command in result.output
