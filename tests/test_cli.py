"""Tests for statehub CLI

Uses Click's test runner for command testing.
"""
import json
from unittest.mock import MagicMock, patch

import requests
import yaml
from click.testing import CliRunner

from statehub.cli import cli


def invoke(args, data_dir):
    runner = CliRunner()
    return runner.invoke(cli, ["--data-dir", str(data_dir), *args], obj={})


class TestGlobalOptions:

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "statehub" in result.output

    def test_verbose_and_quiet_exclusive(self, tmp_path):
        result = invoke(["-v", "-q", "config", "show"], tmp_path)
        assert result.exit_code != 0
        assert "mutually exclusive" in result.output


class TestConfigCommands:

    def test_show_defaults(self, tmp_path):
        result = invoke(["config", "show"], tmp_path)

        assert result.exit_code == 0
        shown = yaml.safe_load(result.output)
        assert shown["port"] == 5920
        assert shown["data_dir"] == str(tmp_path)
        assert shown["error_broadcast"] == "all"

    def test_set_writes_config_yaml(self, tmp_path):
        result = invoke(["config", "set", "port", "6100"], tmp_path)

        assert result.exit_code == 0
        assert yaml.safe_load((tmp_path / "config.yaml").read_text()) == {"port": 6100}

        shown = yaml.safe_load(invoke(["config", "show"], tmp_path).output)
        assert shown["port"] == 6100

    def test_set_unknown_key(self, tmp_path):
        result = invoke(["config", "set", "colour", "blue"], tmp_path)
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_set_invalid_value_keeps_previous_file(self, tmp_path):
        invoke(["config", "set", "port", "6100"], tmp_path)

        result = invoke(["config", "set", "error_broadcast", "everyone"], tmp_path)

        assert result.exit_code == 1
        assert yaml.safe_load((tmp_path / "config.yaml").read_text()) == {"port": 6100}

    def test_set_invalid_value_without_previous_file(self, tmp_path):
        result = invoke(["config", "set", "port", "zero"], tmp_path)

        assert result.exit_code == 1
        assert not (tmp_path / "config.yaml").exists()

    def test_show_reports_broken_config(self, tmp_path):
        (tmp_path / "config.yaml").write_text("port: [1, 2]\n")
        result = invoke(["config", "show"], tmp_path)
        assert result.exit_code == 1
        assert "Error" in result.output


class TestStateCommand:

    def _response(self, payload):
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        return response

    def test_prints_snapshot(self, tmp_path):
        snapshot = {"count": 1, "theme": "dark"}
        with patch("statehub.cli.serve.requests.get", return_value=self._response(snapshot)) as get:
            result = invoke(["state"], tmp_path)

        assert result.exit_code == 0
        assert json.loads(result.output) == snapshot
        get.assert_called_once_with("http://localhost:5920/state", timeout=5.0)

    def test_default_url_uses_https_when_configured(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CERT_PATH", str(tmp_path / "cert.pem"))
        monkeypatch.setenv("KEY_PATH", str(tmp_path / "key.pem"))

        with patch("statehub.cli.serve.requests.get", return_value=self._response({})) as get:
            result = invoke(["state"], tmp_path)

        assert result.exit_code == 0
        get.assert_called_once_with("https://localhost:5920/state", timeout=5.0)

    def test_single_state(self, tmp_path):
        with patch("statehub.cli.serve.requests.get", return_value=self._response({"theme": "light"})):
            result = invoke(["state", "--url", "http://hub.test:9000/", "--name", "theme"], tmp_path)

        assert result.exit_code == 0
        assert json.loads(result.output) == "light"

    def test_unknown_state_name(self, tmp_path):
        with patch("statehub.cli.serve.requests.get", return_value=self._response({"theme": "light"})):
            result = invoke(["state", "--name", "count"], tmp_path)

        assert result.exit_code == 1
        assert "Unknown state 'count'" in result.output

    def test_unreachable_hub(self, tmp_path):
        with patch("statehub.cli.serve.requests.get", side_effect=requests.ConnectionError("refused")):
            result = invoke(["state"], tmp_path)

        assert result.exit_code == 1
        assert "Could not read state" in result.output


class TestServeCommand:

    def test_serve_passes_resolved_config(self, tmp_path):
        with patch("statehub.server.run") as run:
            result = invoke(["serve", "--port", "6200", "--error-broadcast", "origin"], tmp_path)

        assert result.exit_code == 0
        config = run.call_args.args[0]
        assert config.port == 6200
        assert config.error_broadcast == "origin"
        assert config.data_dir == tmp_path
        assert "Starting statehub" in result.output

    def test_serve_quiet(self, tmp_path):
        with patch("statehub.server.run"):
            result = invoke(["-q", "serve"], tmp_path)

        assert result.exit_code == 0
        assert result.output == ""

    def test_serve_reports_startup_failure(self, tmp_path):
        from statehub.errors import StoreError

        with patch("statehub.server.run", side_effect=StoreError("store.json is corrupt")):
            result = invoke(["serve"], tmp_path)

        assert result.exit_code == 1
        assert "store.json is corrupt" in result.output
