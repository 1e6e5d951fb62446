"""Ping utility for MCP connection health checks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from docbridge.mcp.protocol.errors import MCPError
from docbridge.mcp.transport.base import TransportError

if TYPE_CHECKING:
    from docbridge.mcp.protocol.client import MCPClient

logger = logging.getLogger(__name__)


class PingHandler:
    """Answers server-initiated ping requests."""

    async def handle_ping(self, params: dict[str, Any] | None) -> dict[str, Any]:
        logger.debug("Received ping request")
        return {}

    def register_handlers(self, client: "MCPClient") -> None:
        client.on_request("ping", self.handle_ping)


async def ping_server(client: "MCPClient", timeout: float = 5.0) -> bool:
    """
    Ping the MCP server to check connection health.

    Returns:
        True if server responded, False on timeout or error.
    """
    try:
        await client.request("ping", timeout=timeout)
        return True
    except (TransportError, MCPError) as e:
        logger.warning(f"Ping failed: {e}")
        return False
