"""MCP capability negotiation protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docbridge import __version__
from docbridge.mcp.capabilities.client import (
    ClientCapabilities,
    DEFAULT_CLIENT_CAPABILITIES,
)
from docbridge.mcp.capabilities.server import ServerCapabilities

if TYPE_CHECKING:
    from docbridge.mcp.protocol.client import MCPClient

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_VERSIONS = ["2025-11-25", "2025-06-18", "2025-03-26", "2024-11-05"]


class IncompatibleProtocolError(Exception):
    """Server protocol version is not compatible with client."""

    def __init__(self, message: str, server_version: str | None = None):
        super().__init__(message)
        self.server_version = server_version


@dataclass
class ClientInfo:
    """Information about this client sent during initialization."""

    name: str = "docbridge"
    version: str = __version__

    def to_dict(self) -> dict[str, str]:
        """Convert to wire format."""
        return {"name": self.name, "version": self.version}


@dataclass
class ServerInfo:
    """Information about the connected server."""

    name: str
    version: str

    @classmethod
    def from_dict(cls, data: dict) -> "ServerInfo":
        """Create from server response."""
        return cls(
            name=data.get("name", "unknown"),
            version=data.get("version", "unknown"),
        )


@dataclass
class NegotiationResult:
    """Everything exchanged during the initialize handshake."""

    protocol_version: str
    server_info: ServerInfo
    server_capabilities: ServerCapabilities
    client_capabilities: ClientCapabilities
    instructions: str | None = None

    def __str__(self) -> str:
        features = self.server_capabilities.get_available_features()
        return (
            f"NegotiationResult(version={self.protocol_version}, "
            f"server={self.server_info.name}/{self.server_info.version}, "
            f"features={features})"
        )


async def negotiate_capabilities(
    client: "MCPClient",
    client_capabilities: ClientCapabilities | None = None,
    client_info: ClientInfo | None = None,
    timeout: float = 10.0,
) -> NegotiationResult:
    """
    Perform the initialize / notifications/initialized handshake.

    Args:
        client: The MCP client (connected, not yet initialized).
        client_capabilities: Capabilities to declare (defaults to sampling).
        client_info: Client information.
        timeout: Timeout for the initialize request.

    Returns:
        NegotiationResult with server capabilities.

    Raises:
        IncompatibleProtocolError: If server version not supported.
        MCPError: If the server rejects initialization.
        TransportError: If the channel fails.
    """
    client_capabilities = client_capabilities or DEFAULT_CLIENT_CAPABILITIES
    client_info = client_info or ClientInfo()

    response = await client.request(
        "initialize",
        {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": client_capabilities.to_dict(),
            "clientInfo": client_info.to_dict(),
        },
        timeout=timeout,
    )

    if not isinstance(response, dict):
        raise IncompatibleProtocolError(
            f"Malformed initialize result: {type(response).__name__}"
        )

    server_version = response.get("protocolVersion", "")
    if server_version not in SUPPORTED_VERSIONS:
        raise IncompatibleProtocolError(
            f"Server protocol version '{server_version}' not supported. "
            f"Supported versions: {SUPPORTED_VERSIONS}",
            server_version=server_version,
        )

    server_info = ServerInfo.from_dict(response.get("serverInfo", {}))
    server_capabilities = ServerCapabilities.from_dict(
        response.get("capabilities", {})
    )
    logger.info(
        f"Connected to server: {server_info.name} v{server_info.version} "
        f"(protocol {server_version}, features {server_capabilities.get_available_features()})"
    )

    await client.notify("notifications/initialized")
    client.mark_ready()

    return NegotiationResult(
        protocol_version=server_version,
        server_info=server_info,
        server_capabilities=server_capabilities,
        client_capabilities=client_capabilities,
        instructions=response.get("instructions"),
    )
