"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest

from docbridge.mcp.config import MCPServerConfig
from docbridge.mcp.protocol.errors import MCPError
from docbridge.mcp.transport.base import SessionError, Transport
from docbridge.mcp.integration.llm_adapter import MockLLMAdapter
from docbridge.mcp.transport.types import StdioServerParameters

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"


@pytest.fixture
def fake_server_config():
    """Config that spawns the fake MCP server with this interpreter."""
    return MCPServerConfig(
        name="fake",
        command=sys.executable,
        args=[str(FAKE_SERVER)],
    )


@pytest.fixture
def fake_server_params(fake_server_config):
    """Transport parameters for the fake MCP server."""
    return StdioServerParameters(
        command=fake_server_config.command,
        args=list(fake_server_config.args),
        shutdown_timeout=2.0,
    )


@pytest.fixture
def mock_llm():
    """LLM adapter answering every call with a fixed text."""
    return MockLLMAdapter()


class MemoryTransport(Transport):
    """
    In-memory transport for protocol tests.

    Outbound messages are recorded in ``sent`` and passed to ``server``,
    whose replies are delivered back as inbound frames. Tests may also
    push frames (or an exception to raise) with ``deliver``.
    """

    def __init__(self, server=None):
        super().__init__()
        self.server = server
        self.sent = []
        self.inbox = asyncio.Queue()
        self.connected = False

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False
        self.inbox.put_nowait(None)

    async def send(self, message):
        if not self.connected:
            raise SessionError("Transport not connected")
        self.sent.append(message)
        if self.server is not None:
            for reply in await self.server(message) or []:
                self.inbox.put_nowait(reply)

    async def receive(self):
        while True:
            item = await self.inbox.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def is_connected(self):
        return self.connected

    def deliver(self, message):
        self.inbox.put_nowait(message)


INITIALIZE_RESULT = {
    "protocolVersion": "2025-06-18",
    "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
    "serverInfo": {"name": "memory", "version": "0.1"},
}


def scripted_server(routes):
    """
    Build a server function from a method -> result mapping.

    A route may be a value, a callable taking params, or an MCPError.
    Unknown methods get a method-not-found error; notifications are ignored.
    """
    routes = {"initialize": INITIALIZE_RESULT, **routes}

    async def server(message):
        if "method" not in message or "id" not in message:
            return []
        route = routes.get(message["method"])
        if route is None:
            route = MCPError.method_not_found(message["method"])
        result = route(message.get("params") or {}) if callable(route) else route
        if isinstance(result, MCPError):
            return [{"jsonrpc": "2.0", "id": message["id"], "error": result.to_dict()}]
        return [{"jsonrpc": "2.0", "id": message["id"], "result": result}]

    return server


@pytest.fixture
def memory_transport():
    """Factory for in-memory transports: memory_transport(routes)."""

    def make(routes=None):
        return MemoryTransport(scripted_server(routes or {}))

    return make
