"""Tests for the CLI entry point."""

import json
import logging
import subprocess
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from prmend_cli.cli import _build_ledger, main
from prmend_cli.commands.run import build_poller
from prmend_cli.logs import JSONFormatter
from prmend_cli.preflight import PreflightError, check_executable, check_github
from prmend_core.orchestrator import CancellationToken, PollResults
from prmend_store.json_file import JSONFileLedger
from prmend_store.models import LedgerEntry
from prmend_store.sqlite import SQLiteLedger


def _make_config(repos=("acme/api",), **overrides):
    cfg = {
        "repos": list(repos),
        "bot_login": "chatgpt-codex-connector[bot]",
        "poll_interval": 60,
        "clone_base": "/tmp/prmend",
        "clone_protocol": "ssh",
        "agent": "claude",
        "agent_bin": None,
        "agent_timeout": 300,
        "max_diff_chars": 20000,
        "ledger": "json",
        "ledger_path": "/tmp/prmend-ledger.json",
        "telegram_chat_id": None,
        "telegram_token": None,
    }
    cfg.update(overrides)
    return cfg


def _entry(comment_id, outcome="fixed", repo="acme/api", pr_number=7, path="src/auth.py", **kwargs):
    return LedgerEntry(
        comment_id=comment_id,
        repo=repo,
        pr_number=pr_number,
        outcome=outcome,
        path=path,
        processed_at=f"2026-01-0{comment_id % 9 + 1}T10:00:00+00:00",
        **kwargs,
    )


def _patch_common(mocker, config=None, entries=()):
    """Patch load_config, logging setup and _build_ledger for most tests."""
    cfg = config or _make_config()
    mocker.patch("prmend_core.config.load_config", return_value=cfg)
    mocker.patch("prmend_cli.cli.configure_logging")
    mock_ledger = MagicMock(spec=JSONFileLedger)
    mock_ledger.list_entries.return_value = list(entries)
    mocker.patch("prmend_cli.cli._build_ledger", return_value=mock_ledger)
    return cfg, mock_ledger


def _patch_run(mocker, results=None):
    poller = MagicMock()
    poller.poll_once.return_value = results or PollResults()
    build = mocker.patch("prmend_cli.commands.run.build_poller", return_value=poller)
    mocker.patch("prmend_cli.commands.run._install_signal_handlers")
    return build, poller


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_once_runs_single_cycle(self, mocker):
        _patch_common(mocker)
        _, poller = _patch_run(mocker, PollResults(processed=3, fixed=2, skipped=1))

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 0, result.output
        poller.poll_once.assert_called_once_with(None)
        poller.run_forever.assert_not_called()
        assert "Processed 3" in result.output
        assert "2 fixed" in result.output

    def test_without_once_runs_loop(self, mocker):
        _patch_common(mocker)
        _, poller = _patch_run(mocker)

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == 0, result.output
        poller.run_forever.assert_called_once_with(None)

    def test_repo_filter_passed_through(self, mocker):
        _patch_common(mocker, config=_make_config(repos=("acme/api", "acme/web")))
        _, poller = _patch_run(mocker)

        CliRunner().invoke(main, ["run", "--once", "--repo", "acme/web"])

        poller.poll_once.assert_called_once_with("acme/web")

    def test_unknown_repo_filter_rejected(self, mocker):
        _patch_common(mocker)
        build, _ = _patch_run(mocker)

        result = CliRunner().invoke(main, ["run", "--once", "--repo", "acme/other"])

        assert result.exit_code == 2
        assert "not in the configured repositories" in result.output
        build.assert_not_called()

    def test_no_repos_is_usage_error(self, mocker):
        _patch_common(mocker, config=_make_config(repos=()))
        build, _ = _patch_run(mocker)

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 2
        assert "No repositories configured" in result.output
        build.assert_not_called()

    def test_malformed_repo_is_usage_error(self, mocker):
        _patch_common(mocker, config=_make_config(repos=("not-a-repo",)))
        _patch_run(mocker)

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 2

    def test_preflight_failure_exits_nonzero(self, mocker):
        _patch_common(mocker)
        build, poller = _patch_run(mocker)
        build.side_effect = PreflightError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output
        poller.poll_once.assert_not_called()

    def test_notification_sent_when_comments_processed(self, mocker):
        _patch_common(mocker, config=_make_config(telegram_chat_id="42", telegram_token="123:abc"))
        _patch_run(mocker, PollResults(processed=1, fixed=1))
        notifier = MagicMock()
        mocker.patch("prmend_cli.commands.run.build_notifier", return_value=notifier)

        CliRunner().invoke(main, ["run", "--once"])

        notifier.send.assert_called_once()
        assert "Fixed: 1" in notifier.send.call_args.args[0]

    def test_no_notification_for_empty_cycle(self, mocker):
        _patch_common(mocker, config=_make_config(telegram_chat_id="42", telegram_token="123:abc"))
        _patch_run(mocker, PollResults())
        notifier = MagicMock()
        mocker.patch("prmend_cli.commands.run.build_notifier", return_value=notifier)

        CliRunner().invoke(main, ["run", "--once"])

        notifier.send.assert_not_called()


class TestBuildPoller:
    def test_wires_components(self, mocker):
        mocker.patch("prmend_cli.commands.run.resolve_github_token", return_value="tok")
        gh = MagicMock()
        mocker.patch("prmend_cli.commands.run.get_client", return_value=gh)
        preflight = mocker.patch("prmend_cli.commands.run.run_preflight")
        config = _make_config()
        token = CancellationToken()

        poller = build_poller(config, MagicMock(), token)

        preflight.assert_called_once()
        assert config["github_token"] == "tok"
        assert poller.github is gh
        assert poller.token is token
        assert poller.resolver._requester is gh.requester
        assert poller.executor.agent.binary == "claude"

    def test_skip_preflight(self, mocker):
        mocker.patch("prmend_cli.commands.run.resolve_github_token", return_value="tok")
        mocker.patch("prmend_cli.commands.run.get_client", return_value=MagicMock())
        preflight = mocker.patch("prmend_cli.commands.run.run_preflight")

        build_poller(_make_config(), MagicMock(), CancellationToken(), skip_preflight=True)

        preflight.assert_not_called()

    def test_missing_token_raises_preflight_error(self, mocker):
        mocker.patch("prmend_cli.commands.run.resolve_github_token", return_value=None)
        with pytest.raises(PreflightError, match="No GitHub token"):
            build_poller(_make_config(), MagicMock(), CancellationToken())


# ---------------------------------------------------------------------------
# preflight.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from prmend_cli.preflight import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prmend_cli.preflight import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prmend_cli.preflight import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prmend_cli.preflight import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from prmend_cli.preflight import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None


class TestChecks:
    def test_check_executable_returns_first_line(self):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="git version 2.45.0\nextra\n", stderr="")
            assert check_executable(["git", "--version"]) == "git version 2.45.0"

    def test_check_executable_missing_tool(self):
        with patch("subprocess.run", side_effect=FileNotFoundError("claude")):
            with pytest.raises(PreflightError, match="claude is not available"):
                check_executable(["claude", "--version"])

    def test_check_executable_nonzero_exit(self):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=127, stdout="", stderr="")
            with pytest.raises(PreflightError, match="exited with code 127"):
                check_executable(["codex", "--version"])

    def test_check_github_returns_login(self):
        gh = MagicMock()
        gh.get_user.return_value.login = "fixer-bot"
        assert check_github(gh) == "fixer-bot"

    def test_check_github_rejected_token(self):
        from github import BadCredentialsException

        gh = MagicMock()
        gh.get_user.side_effect = BadCredentialsException(401, {"message": "Bad credentials"}, None)
        with pytest.raises(PreflightError, match="GitHub token rejected"):
            check_github(gh)


# ---------------------------------------------------------------------------
# _build_ledger
# ---------------------------------------------------------------------------


class TestBuildLedger:
    def test_returns_json_by_default(self, tmp_path):
        ledger = _build_ledger({"ledger_path": str(tmp_path / "ledger.json")})
        assert isinstance(ledger, JSONFileLedger)

    def test_returns_sqlite_ledger(self, tmp_path):
        ledger = _build_ledger({"ledger": "sqlite", "ledger_path": str(tmp_path / "ledger.db")})
        assert isinstance(ledger, SQLiteLedger)
        ledger.close()

    def test_json_uses_default_path_when_not_specified(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        ledger = _build_ledger({"ledger": "json"})
        assert ledger.path == tmp_path / ".prmend" / "ledger.json"

    def test_unknown_type_rejected(self):
        import click

        with pytest.raises(click.UsageError, match="Unknown ledger type"):
            _build_ledger({"ledger": "redis"})


# ---------------------------------------------------------------------------
# history / stats
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def test_shows_table_when_entries_exist(self, mocker):
        _patch_common(mocker, entries=[_entry(1001), _entry(1002, outcome="skipped:no_changes")])

        result = CliRunner().invoke(main, ["history"])

        assert result.exit_code == 0, result.output
        assert "1001" in result.output
        assert "1002" in result.output
        assert "fixed" in result.output

    def test_shows_empty_message_when_no_entries(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["history", "--repo", "acme/api"])

        assert result.exit_code == 0
        assert "No ledger entries found" in result.output

    def test_filters_passed_to_ledger(self, mocker):
        _, ledger = _patch_common(mocker)

        CliRunner().invoke(main, ["history", "--repo", "acme/api", "--pr", "5"])

        ledger.list_entries.assert_called_once_with(repo="acme/api", pr_number=5)

    def test_limit_keeps_newest(self, mocker):
        _patch_common(mocker, entries=[_entry(i) for i in range(1001, 1006)])

        result = CliRunner().invoke(main, ["history", "--limit", "2"])

        assert "1005" in result.output
        assert "1004" in result.output
        assert "1003" not in result.output


class TestStatsCommand:
    def test_shows_outcome_breakdown(self, mocker):
        entries = [
            _entry(1, resolved=True),
            _entry(2, outcome="skipped:file_not_found", path="src/gone.py"),
            _entry(3, outcome="error:agent_failure"),
        ]
        _patch_common(mocker, entries=entries)

        result = CliRunner().invoke(main, ["stats"])

        assert result.exit_code == 0, result.output
        assert "Comments handled: 3" in result.output
        assert "Threads resolved: 1" in result.output
        assert "error:agent_failure" in result.output
        assert "33.3%" in result.output

    def test_shows_empty_message_when_no_entries(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["stats", "--repo", "acme/api"])

        assert result.exit_code == 0
        assert "No ledger entries found" in result.output


# ---------------------------------------------------------------------------
# logs.py
# ---------------------------------------------------------------------------


class TestJSONFormatter:
    def test_includes_extra_context(self):
        record = logging.makeLogRecord(
            {
                "name": "prmend_core.orchestrator",
                "levelname": "INFO",
                "levelno": logging.INFO,
                "msg": "Recorded outcome %s",
                "args": ("fixed",),
                "comment_id": 1001,
                "repo": "acme/api",
            }
        )

        entry = json.loads(JSONFormatter().format(record))

        assert entry["msg"] == "Recorded outcome fixed"
        assert entry["level"] == "info"
        assert entry["logger"] == "prmend_core.orchestrator"
        assert entry["comment_id"] == 1001
        assert entry["repo"] == "acme/api"
        assert "ts" in entry
