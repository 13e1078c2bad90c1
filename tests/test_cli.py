"""Tests for the codechrono command line (Click)."""

from __future__ import annotations

import asyncio
import io

import pytest
from click.testing import CliRunner
from rich.console import Console

from codechrono import cli as cli_module
from codechrono import config
from codechrono.cli import cli


@pytest.fixture
def runner(monkeypatch):
    # Wide enough that table cells never wrap.
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    return CliRunner()


class TestCliBasic:
    def test_no_command_shows_help(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "coding activity tracker" in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("run", "sync", "status", "roots", "set-token"):
            assert name in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "codechrono" in result.output


class TestCommands:
    def test_roots(self, runner, tmp_path):
        (tmp_path / "app" / ".git").mkdir(parents=True)
        result = runner.invoke(cli, ["roots", str(tmp_path)])
        assert result.exit_code == 0
        assert "app" in result.output

    def test_roots_none_found(self, runner, tmp_path):
        result = runner.invoke(cli, ["roots", str(tmp_path)])
        assert result.exit_code == 0
        assert "No git repositories" in result.output

    def test_set_token(self, runner):
        result = runner.invoke(cli, ["set-token", "--token", "cc_cli"])
        assert result.exit_code == 0
        assert config.TOKEN_FILE.read_text().strip() == "cc_cli"

    def test_set_token_prompt(self, runner):
        result = runner.invoke(cli, ["set-token"], input="cc_prompted\n")
        assert result.exit_code == 0
        assert config.TOKEN_FILE.read_text().strip() == "cc_prompted"

    def test_status_on_empty_store(self, runner, tmp_path):
        db = tmp_path / "cli.db"
        result = runner.invoke(cli, ["--db", str(db), "status"])
        assert result.exit_code == 0
        assert "Unsynced commits" in result.output
        assert "Missing" in result.output

    def test_sync_with_nothing_pending(self, runner, tmp_path):
        db = tmp_path / "cli.db"
        result = runner.invoke(cli, ["--db", str(db), "sync"])
        assert result.exit_code == 0
        assert "Sync complete" in result.output

    def test_sync_store_failure(self, runner, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        result = runner.invoke(cli, ["--db", str(blocker / "x.db"), "sync"])
        assert result.exit_code == 1
        assert "Failed to initialize" in result.output


class TestRun:
    def test_help(self, runner):
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "WORKSPACE" in result.output

    def test_store_failure_exits_nonzero(self, runner, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        ws = tmp_path / "ws"
        ws.mkdir()
        result = runner.invoke(cli, ["--db", str(blocker / "x.db"), "run", str(ws)])
        assert result.exit_code == 1
        assert "Failed to initialize" in result.output

    async def test_tracks_until_stopped(self, tmp_path, monkeypatch):
        out = io.StringIO()
        monkeypatch.setattr(cli_module, "console", Console(file=out, width=200))
        ws = tmp_path / "ws"
        (ws / "app" / ".git").mkdir(parents=True)
        db = tmp_path / "run.db"
        stop = asyncio.Event()
        stop.set()

        await cli_module._run(
            {"db": str(db), "api_url": "https://api.test/graphql"},
            [str(ws)],
            60,
            stop,
        )

        text = out.getvalue()
        assert "Tracking 1 folder(s), 1 git repositories" in text
        assert "Stopped." in text
        assert db.exists()
