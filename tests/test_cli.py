"""Tests for the covdelta CLI."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from covdelta import __version__
from covdelta.cli import cli
from covdelta.utils.github import GitHubAPIError

if TYPE_CHECKING:
    from pathlib import Path

_CURRENT = """\
SF:/ws/src/a.js
DA:1,1
DA:2,0
LF:2
LH:1
end_of_record
SF:/ws/src/b.js
DA:1,1
LF:1
LH:1
end_of_record
"""

_BASE = """\
SF:/ws/src/a.js
DA:1,0
DA:2,0
LF:2
LH:0
end_of_record
"""


def _write_file(root: Path, rel: str, content: str) -> Path:
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


def _report_args(root: Path, *extra: str) -> list[str]:
    return ["report", "--path", str(root), "--prefix", "/ws/", *extra]


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "report" in result.output
    assert "check" in result.output


class TestReport:
    def test_markdown_with_base(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        _write_file(tmp_path, "base/lcov.info", _BASE)
        runner = CliRunner()
        result = runner.invoke(
            cli,
            _report_args(tmp_path, "--lcov-base", "base/lcov.info", "--repository", "o/r"),
        )

        assert result.exit_code == 0, result.output
        assert "**Coverage: 66.7% (+66.7% vs base)**" in result.output
        assert "| `src/a.js` | 50.0% | 0.0% | +50.0% ▲ |" in result.output
        assert "| `src/b.js` | 100.0% | new | new file |" in result.output
        assert "Repository: `o/r`" in result.output

    def test_json_format(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path, "--format", "json"))

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [f["path"] for f in data["files"]] == ["src/a.js", "src/b.js"]
        assert data["delta"] is None

    def test_terminal_format(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path, "--format", "terminal"))

        assert result.exit_code == 0, result.output
        assert "Coverage: 66.7%" in result.output
        assert "Coverage Delta" in result.output

    def test_writes_output_file(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        out = tmp_path / "out" / "report.md"
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path, "--output", str(out)))

        assert result.exit_code == 0, result.output
        assert "## Coverage Report" in out.read_text(encoding="utf-8")

    def test_missing_current_report_exits_cleanly(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path))

        assert result.exit_code == 0
        assert "No coverage report found" in result.output
        assert "Coverage Report" not in result.output

    def test_missing_base_is_ignored(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path, "--lcov-base", "nope.info"))

        assert result.exit_code == 0, result.output
        assert "ignoring" in result.output
        assert "No base report available" in result.output

    def test_malformed_report_fails(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", "DA:10,5\n")
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path))

        assert result.exit_code != 0
        assert "Malformed coverage report" in result.output

    def test_malformed_line_with_markup_is_printed_verbatim(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", "SF:a.js\nLF:[/x]\nend_of_record\n")
        runner = CliRunner()
        result = runner.invoke(cli, _report_args(tmp_path))

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Malformed coverage report" in result.output
        assert "[/x]" in result.output

    def test_unknown_config_format_fails(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        _write_file(tmp_path, ".covdelta.yml", "report:\n  format: html\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["report", "--path", str(tmp_path)])

        assert result.exit_code != 0
        assert "Unknown report format 'html'" in result.output
        assert "## Coverage Report" not in result.output

    def test_uses_config_defaults(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "reports/current.info", _CURRENT)
        _write_file(tmp_path, "reports/base.info", _BASE)
        _write_file(
            tmp_path,
            ".covdelta.yml",
            "report:\n"
            "  lcov_file: reports/current.info\n"
            "  lcov_base: reports/base.info\n"
            "  prefix: /ws/\n"
            "  format: json\n",
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["report", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["delta"] == 66.7
        assert data["files"][0]["path"] == "src/a.js"


class TestCheck:
    def _env(self, tmp_path: Path) -> dict[str, str]:
        payload = {
            "repository": {"full_name": "octo/widgets"},
            "pull_request": {
                "head": {"sha": "headsha", "ref": "feature"},
                "base": {"ref": "main"},
            },
        }
        event = _write_file(tmp_path, "event.json", json.dumps(payload))
        return {
            "GITHUB_EVENT_NAME": "pull_request",
            "GITHUB_EVENT_PATH": str(event),
            "GITHUB_SHA": "mergesha",
            "GITHUB_REF": "refs/pull/1/merge",
            "GITHUB_WORKSPACE": "/ws",
            "GITHUB_REPOSITORY": "octo/widgets",
        }

    def test_publishes_check_run(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        api = MagicMock()
        api.create_check_run.return_value = {"id": 5}
        api.update_check_run.return_value = {"html_url": "https://github.com/check/5"}

        runner = CliRunner()
        with (
            patch.dict(os.environ, self._env(tmp_path), clear=True),
            patch("covdelta.cli.GitHubAPI", return_value=api) as api_cls,
        ):
            result = runner.invoke(
                cli, ["check", "--path", str(tmp_path), "--name", "Cov", "--token", "t"]
            )

        assert result.exit_code == 0, result.output
        assert api_cls.call_args.kwargs["token"] == "t"
        api.create_check_run.assert_called_once_with(
            "octo", "widgets", name="Cov", head_sha="headsha"
        )
        args, kwargs = api.update_check_run.call_args
        assert args == ("octo", "widgets", 5)
        assert kwargs["title"] == "Cov: Coverage: 66.7%"
        assert "`src/a.js`" in kwargs["summary"]
        assert "Branch: `feature` → `main`" in kwargs["summary"]
        assert "Check run published" in result.output

    def test_missing_report_skips_check_run(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with (
            patch.dict(os.environ, self._env(tmp_path), clear=True),
            patch("covdelta.cli.GitHubAPI") as api_cls,
        ):
            result = runner.invoke(cli, ["check", "--path", str(tmp_path), "--token", "t"])

        assert result.exit_code == 0
        api_cls.assert_not_called()

    def test_api_failure_aborts(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)
        api = MagicMock()
        api.create_check_run.side_effect = GitHubAPIError("POST request failed: 403")

        runner = CliRunner()
        with (
            patch.dict(os.environ, self._env(tmp_path), clear=True),
            patch("covdelta.cli.GitHubAPI", return_value=api),
        ):
            result = runner.invoke(cli, ["check", "--path", str(tmp_path), "--token", "t"])

        assert result.exit_code != 0
        assert "Failed to publish check run" in result.output

    def test_outside_actions_aborts(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "coverage/lcov.info", _CURRENT)

        runner = CliRunner()
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("covdelta.cli.GitHubAPI") as api_cls,
        ):
            result = runner.invoke(cli, ["check", "--path", str(tmp_path), "--token", "t"])

        assert result.exit_code != 0
        assert "Repository unknown" in result.output
        api_cls.assert_not_called()


class TestConfigCommands:
    def test_show_masks_token(self, tmp_path: Path) -> None:
        _write_file(tmp_path, ".covdelta.yml", "github:\n  token: ghp_supersecretvalue\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path), "--json-output"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["github"]["token"] == "ghp_...alue"
        assert "raw" not in data

    def test_show_no_mask(self, tmp_path: Path) -> None:
        _write_file(tmp_path, ".covdelta.yml", "github:\n  token: ghp_supersecretvalue\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show", "--path", str(tmp_path), "--no-mask"])

        assert result.exit_code == 0, result.output
        assert "ghp_supersecretvalue" in result.output

    def test_validate_ok(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_validate_errors(self, tmp_path: Path) -> None:
        _write_file(tmp_path, ".covdelta.yml", "report:\n  format: html\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code != 0
        assert "report.format" in result.output
