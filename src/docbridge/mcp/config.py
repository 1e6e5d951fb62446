"""Bridge configuration: MCP server definitions and environment settings."""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from docbridge.lib import oj
from docbridge.mcp.transport.types import StdioServerParameters

logger = logging.getLogger(__name__)

# Config file locations
MCP_CONFIG_FILENAME = "mcp.json"
GLOBAL_MCP_CONFIG = Path.home() / ".docbridge" / MCP_CONFIG_FILENAME
LOCAL_MCP_CONFIG_DIR = ".docbridge"

DEFAULT_MODEL = "openai/gpt-4o-mini"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ConfigError(Exception):
    """Configuration is missing or invalid."""

    pass


@dataclass
class MCPServerConfig:
    """Configuration for a single stdio MCP server."""

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "MCPServerConfig":
        """Create from config dict."""
        return cls(
            name=name,
            command=data.get("command", ""),
            args=[str(arg) for arg in data.get("args", [])],
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            cwd=data.get("cwd"),
        )

    @classmethod
    def from_command_line(cls, command_line: str, name: str = "default") -> "MCPServerConfig":
        """Create from a shell-style command line."""
        parts = shlex.split(command_line)
        if not parts:
            raise ConfigError("Server command line is empty")
        return cls(name=name, command=parts[0], args=parts[1:])

    def to_parameters(self, **kwargs) -> StdioServerParameters:
        """Transport parameters for spawning this server."""
        return StdioServerParameters(
            command=self.command,
            args=list(self.args),
            env=dict(self.env) or None,
            cwd=self.cwd,
            **kwargs,
        )


def _read_servers(path: Path) -> dict[str, MCPServerConfig]:
    configs: dict[str, MCPServerConfig] = {}
    try:
        data = oj.loads(path.read_bytes())
    except (OSError, oj.JSONDecodeError) as e:
        logger.warning(f"Skipping unreadable MCP config {path}: {e}")
        return configs

    servers = data.get("mcpServers", {}) if isinstance(data, dict) else {}
    for name, server_data in servers.items():
        if isinstance(server_data, dict) and server_data.get("command"):
            configs[name] = MCPServerConfig.from_dict(name, server_data)
        else:
            logger.warning(f"Skipping MCP server {name!r} in {path}: no command")
    return configs


def load_mcp_config(
    working_dir: Path | None = None,
    global_config: Path | None = None,
) -> dict[str, MCPServerConfig]:
    """Load MCP server configs from global and local config files.

    Global config (~/.docbridge/mcp.json) is loaded first.
    Local config ({working_dir}/.docbridge/mcp.json) overrides global.

    Returns:
        Dict mapping server name to config.
    """
    configs: dict[str, MCPServerConfig] = {}

    global_path = global_config or GLOBAL_MCP_CONFIG
    if global_path.exists():
        configs.update(_read_servers(global_path))

    if working_dir:
        local_config = working_dir / LOCAL_MCP_CONFIG_DIR / MCP_CONFIG_FILENAME
        if local_config.exists():
            configs.update(_read_servers(local_config))

    return configs


def _optional_int(environ: Mapping[str, str], name: str, default: int | None) -> int | None:
    value = environ.get(name, "").strip()
    if not value:
        return default
    if value.lower() in ("none", "unlimited"):
        return None
    try:
        number = int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    return number if number > 0 else None


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name, "").strip()
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return number


@dataclass
class BridgeSettings:
    """Everything a BridgeSession needs, usually read from the environment."""

    api_key: str
    server: MCPServerConfig
    model: str = DEFAULT_MODEL
    sampling_model: str | None = None
    max_iterations: int | None = 10
    request_timeout: float = 60.0
    log_level: str = "INFO"

    @property
    def effective_sampling_model(self) -> str:
        return self.sampling_model or self.model

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        working_dir: Path | None = None,
    ) -> "BridgeSettings":
        """
        Read settings from environment variables.

        The server comes from DOCBRIDGE_SERVER_COMMAND if set, otherwise
        from mcp.json (DOCBRIDGE_SERVER picks a name, else the first entry).

        Raises:
            ConfigError: If DEDALUS_API_KEY is missing, no server is
                configured, or a numeric setting is malformed.
        """
        environ = os.environ if environ is None else environ

        api_key = environ.get("DEDALUS_API_KEY", "").strip()
        if not api_key:
            raise ConfigError("DEDALUS_API_KEY is not set")

        return cls(
            api_key=api_key,
            server=_resolve_server(environ, working_dir or Path.cwd()),
            model=environ.get("DOCBRIDGE_MODEL") or DEFAULT_MODEL,
            sampling_model=environ.get("DOCBRIDGE_SAMPLING_MODEL") or None,
            max_iterations=_optional_int(environ, "DOCBRIDGE_MAX_ITERATIONS", 10),
            request_timeout=_float(environ, "DOCBRIDGE_REQUEST_TIMEOUT", 60.0),
            log_level=(environ.get("DOCBRIDGE_LOG_LEVEL") or "INFO").upper(),
        )


def _resolve_server(environ: Mapping[str, str], working_dir: Path) -> MCPServerConfig:
    command_line = environ.get("DOCBRIDGE_SERVER_COMMAND", "").strip()
    if command_line:
        return MCPServerConfig.from_command_line(command_line)

    configs = load_mcp_config(working_dir)
    name = environ.get("DOCBRIDGE_SERVER", "").strip()
    if name:
        if name not in configs:
            raise ConfigError(f"MCP server {name!r} not found in {MCP_CONFIG_FILENAME}")
        return configs[name]
    if not configs:
        raise ConfigError(
            "No MCP server configured: set DOCBRIDGE_SERVER_COMMAND "
            f"or add one to {MCP_CONFIG_FILENAME}"
        )
    return next(iter(configs.values()))


def configure_logging(level: str | int = "INFO") -> None:
    """Set up root logging for the command-line entry point."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
