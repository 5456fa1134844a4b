from __future__ import annotations

import json
from unittest.mock import patch

from click.testing import CliRunner

from repobot.cli import main


def make_repo(tmp_path):
    (tmp_path / ".git").mkdir()
    (tmp_path / ".gitignore").write_text("private/\n")
    (tmp_path / "TODO.md").write_text("## Setup\n- [ ] write tests\n- [x] init repo\n")
    (tmp_path / "private").mkdir()
    (tmp_path / "private" / "TODO.md").write_text("- [ ] secret\n")
    (tmp_path / "README.md").write_text("# Repobot\nReports for repos.\n")
    return tmp_path


def test_cli_help_lists_commands():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("report", "todos", "todo", "docs", "config", "init"):
        assert command in result.output


def test_cli_init_writes_sample_config(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["init"])

    assert result.exit_code == 0
    assert (tmp_path / "repobot.yml").exists()
    second = CliRunner().invoke(main, ["init"])
    assert "Skipped" in second.output


def test_cli_todos_json_skips_ignored_files(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["todos", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert list(data) == ["TODO.md"]
    assert data["TODO.md"]["sections"] == ["Setup"]


def test_cli_todo_done_and_undo(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(main, ["todo", "done", "TODO.md", "write tests"])
    assert result.exit_code == 0
    assert "- [x] write tests" in (tmp_path / "TODO.md").read_text()

    result = runner.invoke(main, ["todo", "undo", "TODO.md", "init repo"])
    assert result.exit_code == 0
    assert (tmp_path / "TODO.md").read_text() == "## Setup\n- [x] write tests\n- [ ] init repo\n"


def test_cli_todo_done_without_match_reports_and_succeeds(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["todo", "done", "TODO.md", "deploy"])

    assert result.exit_code == 0
    assert "No task matching 'deploy'" in result.output
    assert (tmp_path / "TODO.md").read_text() == "## Setup\n- [ ] write tests\n- [x] init repo\n"


def test_cli_todo_on_ignored_file_exits_not_found(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["todo", "done", "private/TODO.md", "secret"])

    assert result.exit_code == 3
    assert (tmp_path / "private" / "TODO.md").read_text() == "- [ ] secret\n"


def test_cli_docs_lists_titles(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["docs"])

    assert result.exit_code == 0
    assert "README.md: Repobot - 1 sections" in result.output


def test_cli_report_without_ai_or_git(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["report", "daily", "--no-ai", "--no-git"])

    assert result.exit_code == 0
    assert "# Daily repository report" in result.output
    assert "secret" not in result.output


def test_cli_report_send_requires_telegram(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)

    result = CliRunner().invoke(main, ["report", "--no-ai", "--no-git", "--send"])

    assert result.exit_code == 1
    assert "Telegram not configured" in result.output


def test_cli_report_send_uses_telegram(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")

    with patch("repobot.cli.TelegramClient") as client_cls:
        client_cls.return_value.send_message.return_value = 1
        result = CliRunner().invoke(main, ["report", "--no-ai", "--no-git", "--send"])

    assert result.exit_code == 0
    client_cls.assert_called_once_with("token", "42")
    assert "Report sent to Telegram" in result.output


def test_cli_config_set_and_get(tmp_path, monkeypatch):
    make_repo(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(main, ["config", "set", "repository.paths.todos", "TODO.md,tasks/*.md"])
    assert result.exit_code == 0

    result = runner.invoke(main, ["config", "get", "repository.paths.todos"])
    assert result.exit_code == 0
    assert json.loads(result.output) == ["TODO.md", "tasks/*.md"]

    result = runner.invoke(main, ["config", "get", "nope"])
    assert result.exit_code == 2


def test_cli_missing_required_ignore_file(tmp_path, monkeypatch):
    make_repo(tmp_path)
    (tmp_path / ".gitignore").unlink()
    (tmp_path / "repobot.yml").write_text("repository:\n  ignore:\n    require_primary: true\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(main, ["todos"])

    assert result.exit_code == 2
