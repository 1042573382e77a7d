"""Tests for proxy CLI helpers."""

import json
from unittest.mock import patch

import pytest

from args import parse_args
from cli_proxy import (
    _enforce_local_binding,
    _is_local_bind_host,
    _load_config_file,
    build_config,
    run_proxy_server,
)
from constants import ExitCodes


def test_is_local_bind_host_loopback():
    """Loopback hosts should be treated as local."""
    assert _is_local_bind_host("127.0.0.1") is True
    assert _is_local_bind_host("localhost") is True
    assert _is_local_bind_host("::1") is True


def test_is_local_bind_host_external():
    """Non-local hosts should be treated as external."""
    assert _is_local_bind_host("0.0.0.0") is False
    assert _is_local_bind_host("192.168.1.10") is False
    assert _is_local_bind_host("example.com") is False
    assert _is_local_bind_host("") is False


def test_enforce_local_binding_rejects_external():
    """External bindings must be explicitly allowed."""
    with pytest.raises(SystemExit) as exc_info:
        _enforce_local_binding("0.0.0.0", False)
    assert exc_info.value.code == ExitCodes.USAGE_ERROR.value


def test_enforce_local_binding_allows_with_flag():
    """External bindings are allowed only when flag is set."""
    _enforce_local_binding("0.0.0.0", True)


class TestConfigLoading:
    """Tests for config file loading and precedence."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """A missing config file is not fatal."""
        assert _load_config_file(str(tmp_path / "nope.json")) == {}
        assert _load_config_file(None) == {}

    def test_json_config(self, tmp_path):
        """config.json is parsed."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"port": 4000}))
        assert _load_config_file(str(path)) == {"port": 4000}

    def test_yaml_config(self, tmp_path):
        """YAML files use the same layout."""
        path = tmp_path / "config.yml"
        path.write_text("port: 4001\njsdelivr:\n  whitelist:\n    npm: [vue]\n")
        args = parse_args(["-c", str(path)])
        config = build_config(args)
        assert config.port == 4001
        assert config.whitelist.npm == frozenset({"vue"})

    def test_non_mapping_rejected(self, tmp_path):
        """A top-level list is not a valid config."""
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            _load_config_file(str(path))

    def test_invalid_config_exits(self, tmp_path):
        """Unparseable config exits with FILE_ERROR."""
        path = tmp_path / "config.json"
        path.write_text("{not: [valid")
        with pytest.raises(SystemExit) as exc_info:
            build_config(parse_args(["-c", str(path)]))
        assert exc_info.value.code == ExitCodes.FILE_ERROR.value

    def test_cli_overrides_file(self, tmp_path):
        """CLI flags win over file values."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"port": 4000, "timeout": 5}))
        config = build_config(parse_args(["-c", str(path), "--port", "5000"]))
        assert config.port == 5000
        assert config.timeout == 5

    def test_token_from_environment(self, tmp_path, monkeypatch):
        """GITHUB_TOKEN fills in a missing token."""
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        config = build_config(parse_args([]))
        assert config.github_token == "env-token"

    def test_file_token_wins_over_environment(self, tmp_path, monkeypatch):
        """A token in the config file takes precedence over GITHUB_TOKEN."""
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"github": {"token": "file-token"}}))
        config = build_config(parse_args(["-c", str(path)]))
        assert config.github_token == "file-token"


def test_run_proxy_server_refuses_external_bind(monkeypatch):
    """Starting on 0.0.0.0 without --allow-external exits before serving."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("CDNGATE_LOG_LEVEL", "INFO")
    with patch("cdn_proxy.server.run_proxy_server_sync") as run_sync:
        with pytest.raises(SystemExit) as exc_info:
            run_proxy_server(parse_args(["--host", "0.0.0.0"]))
    assert exc_info.value.code == ExitCodes.USAGE_ERROR.value
    run_sync.assert_not_called()


def test_run_proxy_server_starts(monkeypatch, capsys):
    """A local bind prints the banner and runs the server."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("CDNGATE_LOG_LEVEL", "INFO")
    with patch("cdn_proxy.server.run_proxy_server_sync") as run_sync:
        run_proxy_server(parse_args(["--port", "3100"]))
    config = run_sync.call_args[0][0]
    assert config.port == 3100
    assert "http://127.0.0.1:3100" in capsys.readouterr().out
