"""Tests for daberu.cli: chat, last, show, presets."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from daberu.cli.chat_cmd import build_run_config, request_timeout
from daberu.cli.main import cli
from daberu.core.config import DEFAULTS, ConfigError, _deep_merge
from daberu.core.models import FileSpec, ShellSpec


def _mock_httpx_reply(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.content = json.dumps(body).encode("utf-8")
    return resp


def _openai(text: str) -> dict:
    return {"choices": [{"message": {"content": text}, "finish_reason": "stop"}]}


def _env(tmp_path: Path) -> dict:
    return {
        "DABERU_CONFIG": str(tmp_path / "missing.yaml"),
        "OPENAI_API_KEY": "sk-test",
    }


class TestBuildRunConfig:
    def test_defaults(self):
        rc = build_run_config(
            DEFAULTS, provider=None, model=None, api_keys={"openai": "k"},
            system=None, log_path=None, continue_mode=False,
        )
        assert rc.provider == "openai"
        assert rc.model == "gpt-4o"
        assert rc.api_key == "k"
        assert rc.resource_size_limit == DEFAULTS["resource_size_limit"]

    def test_provider_inferred_from_model(self):
        rc = build_run_config(
            DEFAULTS, provider=None, model="claude-sonnet-4-20250514",
            api_keys={"anthropic": "ak"}, system=None, log_path=None, continue_mode=False,
        )
        assert rc.provider == "anthropic"
        assert rc.api_key == "ak"
        assert rc.provider_options["max_tokens"] == 4096

    def test_alias_normalized(self):
        rc = build_run_config(
            DEFAULTS, provider="claude", model="m", api_keys={"anthropic": "ak"},
            system=None, log_path=None, continue_mode=False,
        )
        assert rc.provider == "anthropic"

    def test_resource_order_and_shell(self):
        config = _deep_merge(DEFAULTS, {
            "resource_presets": {"p": [{"type": "file", "path": "preset.txt"}]},
        })
        rc = build_run_config(
            config, provider="openai", model=None, api_keys={"openai": "k"},
            system=None, log_path=None, continue_mode=False,
            files=(Path("a.txt"),), shell_commands=("ls",), presets=("p",),
            shell_executable="bash",
        )
        assert rc.resources == [
            FileSpec(Path("preset.txt")),
            FileSpec(Path("a.txt")),
            ShellSpec(command="ls", shell="bash"),
        ]

    def test_explicit_limit_wins(self):
        rc = build_run_config(
            DEFAULTS, provider="openai", model=None, api_keys={"openai": "k"},
            system=None, log_path=None, continue_mode=False, resource_size_limit=0,
        )
        assert rc.resource_size_limit == 0

    @pytest.mark.parametrize("limit", [-1, "lots", None])
    def test_bad_config_limit_rejected(self, limit):
        config = _deep_merge(DEFAULTS, {"resource_size_limit": limit})
        with pytest.raises(ConfigError, match="resource_size_limit"):
            build_run_config(
                config, provider="openai", model=None, api_keys={"openai": "k"},
                system=None, log_path=None, continue_mode=False,
            )

    def test_request_timeout(self):
        assert request_timeout(DEFAULTS) == 120.0
        assert request_timeout({"timeout": "30"}) == 30.0

    @pytest.mark.parametrize("value", [None, "soon", 0, -3])
    def test_bad_timeout_rejected(self, value):
        with pytest.raises(ConfigError, match="timeout"):
            request_timeout({"timeout": value})

    def test_keyring_fallback(self):
        with patch("daberu.cli.chat_cmd._get_api_key", return_value="from-keyring") as mock_get:
            rc = build_run_config(
                DEFAULTS, provider="openai", model=None, api_keys={"openai": None},
                system=None, log_path=None, continue_mode=False,
            )
        mock_get.assert_called_once_with("openai")
        assert rc.api_key == "from-keyring"


class TestChatCmd:
    def test_prints_reply_and_saves_log(self, tmp_path: Path):
        log_path = tmp_path / "log.json"
        runner = CliRunner()

        with patch("httpx.post", return_value=_mock_httpx_reply(_openai("Hello!"))) as mock_post:
            result = runner.invoke(
                cli, ["chat", "--log", str(log_path)], input="hi", env=_env(tmp_path)
            )

        assert result.exit_code == 0, result.output
        assert "Hello!" in result.output
        sent = json.loads(mock_post.call_args.kwargs["content"])
        assert sent["messages"] == [{"role": "user", "content": "hi"}]
        assert json.loads(log_path.read_text()) == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

    def test_attaches_file_resource(self, tmp_path: Path):
        doc = tmp_path / "doc.txt"
        doc.write_text("THE DOC")
        runner = CliRunner()

        with patch("httpx.post", return_value=_mock_httpx_reply(_openai("ok"))) as mock_post:
            result = runner.invoke(
                cli, ["chat", "-r", str(doc)], input="explain", env=_env(tmp_path)
            )

        assert result.exit_code == 0, result.output
        content = json.loads(mock_post.call_args.kwargs["content"])["messages"][0]["content"]
        assert content.index("THE DOC") < content.index("explain")

    def test_api_error_exits_nonzero_and_keeps_log(self, tmp_path: Path):
        log_path = tmp_path / "log.json"
        log_path.write_text('[{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}]')
        before = log_path.read_text()
        runner = CliRunner()

        reply = _mock_httpx_reply({"error": {"message": "Invalid key"}}, status=401)
        with patch("httpx.post", return_value=reply):
            result = runner.invoke(
                cli, ["chat", "-l", str(log_path), "-c"], input="c", env=_env(tmp_path)
            )

        assert result.exit_code == 1
        assert "Invalid key" in result.output
        assert log_path.read_text() == before

    def test_missing_resource_file(self, tmp_path: Path):
        runner = CliRunner()
        with patch("httpx.post") as mock_post:
            result = runner.invoke(
                cli, ["chat", "-r", str(tmp_path / "nope.txt")], input="x", env=_env(tmp_path)
            )
        assert result.exit_code == 1
        assert "not found" in result.output
        mock_post.assert_not_called()

    def test_unknown_provider(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["chat", "--provider", "gemini"], input="x", env=_env(tmp_path)
        )
        assert result.exit_code == 1
        assert "Unknown provider" in result.output

    def test_negative_limit_in_config_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("resource_size_limit: -1\n")
        doc = tmp_path / "doc.txt"
        doc.write_text("x")
        runner = CliRunner()

        with patch("httpx.post") as mock_post:
            result = runner.invoke(
                cli, ["chat", "-r", str(doc), "--config", str(config_file)],
                input="x", env=_env(tmp_path),
            )

        assert result.exit_code == 1
        assert "resource_size_limit must be >= 0" in result.output
        mock_post.assert_not_called()

    def test_null_timeout_in_config_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("timeout: null\n")
        runner = CliRunner()

        with patch("httpx.post") as mock_post:
            result = runner.invoke(
                cli, ["chat", "--config", str(config_file)], input="x", env=_env(tmp_path)
            )

        assert result.exit_code == 1
        assert "timeout must be a number" in result.output
        mock_post.assert_not_called()

    def test_echo_input(self, tmp_path: Path):
        runner = CliRunner()
        with patch("httpx.post", return_value=_mock_httpx_reply(_openai("reply"))):
            result = runner.invoke(
                cli, ["chat", "--echo-input"], input="my prompt", env=_env(tmp_path)
            )
        assert result.exit_code == 0, result.output
        assert result.output.index("my prompt") < result.output.index("reply")


class TestLogCmds:
    def _write_log(self, tmp_path: Path) -> Path:
        log_path = tmp_path / "log.json"
        log_path.write_text(json.dumps([
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "question"},
            {"role": "assistant", "content": "the answer"},
        ]))
        return log_path

    def test_last(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["last", "--log", str(self._write_log(tmp_path))])
        assert result.exit_code == 0
        assert result.output == "the answer\n"

    def test_last_missing_log(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["last", "--log", str(tmp_path / "nope.json")])
        assert result.exit_code == 1

    def test_show(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["show", "-l", str(self._write_log(tmp_path))])
        assert result.exit_code == 0
        assert "## System" in result.output
        assert "## User" in result.output
        assert result.output.index("question") < result.output.index("the answer")

    def test_show_empty(self, tmp_path: Path):
        log_path = tmp_path / "log.json"
        log_path.write_text("[]")
        runner = CliRunner()
        result = runner.invoke(cli, ["show", "-l", str(log_path)])
        assert "Log is empty." in result.output


class TestPresetsCmd:
    def test_no_presets(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["presets", "--config", str(tmp_path / "none.yaml")])
        assert result.exit_code == 0
        assert "No resource presets configured." in result.output

    def test_lists_presets(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "resource_presets:\n"
            "  repo:\n"
            "    - {type: file, path: README.md}\n"
            "    - {type: shell, command: git status}\n"
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["presets", "--config", str(config_file)])
        assert result.exit_code == 0
        assert "repo:" in result.output
        assert "README.md" in result.output
        assert "git status" in result.output
