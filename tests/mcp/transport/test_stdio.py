"""Tests for the stdio subprocess transport."""

import asyncio
import sys

import pytest

from docbridge.mcp.transport import (
    StdioTransport,
    StdioServerParameters,
    ConnectionError,
    SessionError,
    FramingError,
    TransportEventType,
)


async def next_message(transport):
    async for message in transport.receive():
        return message


class TestStdioServerParameters:
    """Tests for StdioServerParameters validation."""

    def test_command_line(self):
        params = StdioServerParameters(command="node", args=["server.js"])
        assert params.command_line == ["node", "server.js"]

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError, match="command is required"):
            StdioServerParameters(command="")

    def test_invalid_stderr_policy_rejected(self):
        with pytest.raises(ValueError, match="Invalid stderr policy"):
            StdioServerParameters(command="node", stderr="discard")

    def test_invalid_shutdown_timeout_rejected(self):
        with pytest.raises(ValueError, match="shutdown_timeout must be positive"):
            StdioServerParameters(command="node", shutdown_timeout=0)


class TestStdioTransport:
    """Tests against the fake MCP server process."""

    @pytest.fixture
    def transport(self, fake_server_params):
        return StdioTransport(fake_server_params)

    @pytest.mark.asyncio
    async def test_connect_spawns_process(self, transport):
        await transport.connect()
        try:
            assert transport.is_connected()
            assert transport.pid is not None
        finally:
            await transport.disconnect()
        assert not transport.is_connected()
        assert transport.pid is None

    @pytest.mark.asyncio
    async def test_round_trip(self, transport):
        async with transport:
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "ping"})
            message = await asyncio.wait_for(next_message(transport), timeout=10)
        assert message == {"jsonrpc": "2.0", "id": 1, "result": {}}

    @pytest.mark.asyncio
    async def test_send_requires_connection(self, transport):
        with pytest.raises(SessionError, match="not connected"):
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})

    @pytest.mark.asyncio
    async def test_disconnect_twice_is_safe(self, transport):
        await transport.connect()
        await transport.disconnect()
        await transport.disconnect()
        assert not transport.is_connected()

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        transport = StdioTransport(
            StdioServerParameters(command="/nonexistent/docbridge-test-server")
        )
        with pytest.raises(ConnectionError, match="Failed to start server process"):
            await transport.connect()

    @pytest.mark.asyncio
    async def test_process_exit_raises_session_error(self):
        transport = StdioTransport(
            StdioServerParameters(command=sys.executable, args=["-c", "import sys; sys.exit(4)"])
        )
        await transport.connect()
        try:
            with pytest.raises(SessionError, match="exited with code 4"):
                await asyncio.wait_for(next_message(transport), timeout=10)
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_malformed_frame_raises_framing_error(self):
        transport = StdioTransport(
            StdioServerParameters(
                command=sys.executable,
                args=["-c", "print('not json', flush=True); import time; time.sleep(5)"],
                shutdown_timeout=1.0,
            )
        )
        await transport.connect()
        try:
            with pytest.raises(FramingError, match="Malformed frame"):
                await asyncio.wait_for(next_message(transport), timeout=10)
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_non_object_frame_rejected(self):
        transport = StdioTransport(
            StdioServerParameters(
                command=sys.executable,
                args=["-c", "print('[1, 2]', flush=True); import time; time.sleep(5)"],
                shutdown_timeout=1.0,
            )
        )
        await transport.connect()
        try:
            with pytest.raises(FramingError, match="not a JSON object"):
                await asyncio.wait_for(next_message(transport), timeout=10)
        finally:
            await transport.disconnect()

    @pytest.mark.asyncio
    async def test_event_emission(self, transport):
        events = []
        transport.on_event(lambda e: events.append(e))

        await transport.connect()
        await transport.disconnect()

        event_types = [e.type for e in events]
        assert TransportEventType.CONNECTING in event_types
        assert TransportEventType.CONNECTED in event_types
        assert TransportEventType.DISCONNECTING in event_types
        assert TransportEventType.DISCONNECTED in event_types

    @pytest.mark.asyncio
    async def test_stderr_logged(self, caplog):
        transport = StdioTransport(
            StdioServerParameters(
                command=sys.executable,
                args=["-c", "import sys; sys.stderr.write('booting\\n'); sys.stderr.flush(); sys.stdin.read()"],
                stderr="log",
                shutdown_timeout=2.0,
            )
        )
        caplog.set_level("DEBUG", logger="docbridge.mcp.transport.stdio")
        await transport.connect()
        try:
            for _ in range(100):
                if "booting" in caplog.text:
                    break
                await asyncio.sleep(0.05)
        finally:
            await transport.disconnect()
        assert "[server stderr] booting" in caplog.text
