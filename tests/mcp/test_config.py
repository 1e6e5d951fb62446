"""Tests for configuration loading."""

import json
import logging

import pytest

from docbridge.mcp import config as config_module
from docbridge.mcp.config import (
    BridgeSettings,
    ConfigError,
    MCPServerConfig,
    configure_logging,
    load_mcp_config,
)


def write_config(path, servers):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"mcpServers": servers}))


@pytest.fixture
def global_config(tmp_path, monkeypatch):
    path = tmp_path / "home" / ".docbridge" / "mcp.json"
    monkeypatch.setattr(config_module, "GLOBAL_MCP_CONFIG", path)
    return path


class TestLoadMcpConfig:
    def test_local_overrides_global(self, tmp_path, global_config):
        write_config(global_config, {
            "docs": {"command": "node", "args": ["global.js"]},
            "other": {"command": "python", "args": ["-m", "other"]},
        })
        project = tmp_path / "project"
        write_config(project / ".docbridge" / "mcp.json", {
            "docs": {"command": "npx", "args": ["tsx", "src/server.ts"], "env": {"DEBUG": 1}},
        })

        configs = load_mcp_config(project)

        assert configs["docs"] == MCPServerConfig(
            name="docs",
            command="npx",
            args=["tsx", "src/server.ts"],
            env={"DEBUG": "1"},
        )
        assert configs["other"].command == "python"

    def test_entries_without_command_skipped(self, tmp_path, global_config):
        write_config(global_config, {"remote": {"url": "https://example.com/mcp"}})
        assert load_mcp_config(tmp_path) == {}

    def test_unreadable_file_skipped(self, tmp_path, global_config, caplog):
        global_config.parent.mkdir(parents=True)
        global_config.write_text("{nope")
        assert load_mcp_config(tmp_path) == {}
        assert "Skipping unreadable MCP config" in caplog.text

    def test_to_parameters(self):
        params = MCPServerConfig(name="s", command="node", args=["a.js"]).to_parameters()
        assert params.command_line == ["node", "a.js"]
        assert params.env is None
        assert params.stderr == "ignore"


class TestBridgeSettings:
    def test_missing_api_key_fails_fast(self, tmp_path):
        with pytest.raises(ConfigError, match="DEDALUS_API_KEY"):
            BridgeSettings.from_env({"DOCBRIDGE_SERVER_COMMAND": "node s.js"}, tmp_path)

    def test_command_line_server(self, tmp_path):
        settings = BridgeSettings.from_env(
            {
                "DEDALUS_API_KEY": "key",
                "DOCBRIDGE_SERVER_COMMAND": "npx tsx 'src/my server.ts'",
                "DOCBRIDGE_MODEL": "anthropic/claude-sonnet-4-5",
                "DOCBRIDGE_MAX_ITERATIONS": "4",
                "DOCBRIDGE_REQUEST_TIMEOUT": "2.5",
                "DOCBRIDGE_LOG_LEVEL": "debug",
            },
            tmp_path,
        )
        assert settings.server.command == "npx"
        assert settings.server.args == ["tsx", "src/my server.ts"]
        assert settings.model == "anthropic/claude-sonnet-4-5"
        assert settings.effective_sampling_model == "anthropic/claude-sonnet-4-5"
        assert settings.max_iterations == 4
        assert settings.request_timeout == 2.5
        assert settings.log_level == "DEBUG"

    def test_defaults(self, tmp_path):
        settings = BridgeSettings.from_env(
            {"DEDALUS_API_KEY": "key", "DOCBRIDGE_SERVER_COMMAND": "node s.js"}, tmp_path
        )
        assert settings.model == "openai/gpt-4o-mini"
        assert settings.sampling_model is None
        assert settings.max_iterations == 10
        assert settings.request_timeout == 60.0

    def test_sampling_model(self, tmp_path):
        settings = BridgeSettings.from_env(
            {
                "DEDALUS_API_KEY": "key",
                "DOCBRIDGE_SERVER_COMMAND": "node s.js",
                "DOCBRIDGE_SAMPLING_MODEL": "openai/gpt-4.1-mini",
            },
            tmp_path,
        )
        assert settings.effective_sampling_model == "openai/gpt-4.1-mini"

    @pytest.mark.parametrize("value", ["0", "none"])
    def test_unbounded_iterations(self, tmp_path, value):
        settings = BridgeSettings.from_env(
            {
                "DEDALUS_API_KEY": "key",
                "DOCBRIDGE_SERVER_COMMAND": "node s.js",
                "DOCBRIDGE_MAX_ITERATIONS": value,
            },
            tmp_path,
        )
        assert settings.max_iterations is None

    def test_bad_number(self, tmp_path):
        with pytest.raises(ConfigError, match="DOCBRIDGE_REQUEST_TIMEOUT"):
            BridgeSettings.from_env(
                {
                    "DEDALUS_API_KEY": "key",
                    "DOCBRIDGE_SERVER_COMMAND": "node s.js",
                    "DOCBRIDGE_REQUEST_TIMEOUT": "soon",
                },
                tmp_path,
            )

    def test_named_server_from_config(self, tmp_path, global_config):
        write_config(global_config, {
            "a": {"command": "node", "args": ["a.js"]},
            "b": {"command": "node", "args": ["b.js"]},
        })
        settings = BridgeSettings.from_env(
            {"DEDALUS_API_KEY": "key", "DOCBRIDGE_SERVER": "b"}, tmp_path
        )
        assert settings.server.args == ["b.js"]

    def test_unknown_named_server(self, tmp_path, global_config):
        with pytest.raises(ConfigError, match="'b' not found"):
            BridgeSettings.from_env({"DEDALUS_API_KEY": "key", "DOCBRIDGE_SERVER": "b"}, tmp_path)

    def test_no_server(self, tmp_path, global_config):
        with pytest.raises(ConfigError, match="No MCP server configured"):
            BridgeSettings.from_env({"DEDALUS_API_KEY": "key"}, tmp_path)


def test_configure_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    configure_logging("debug")
    configure_logging("bogus")
    assert calls[0]["level"] == logging.DEBUG
    assert calls[1]["level"] == logging.INFO
