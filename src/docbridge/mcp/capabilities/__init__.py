"""
MCP Capability Negotiation.

Declares what this client supports, parses what the server supports,
and runs the initialize handshake.
"""

from docbridge.mcp.capabilities.client import (
    ClientCapabilities,
    SamplingCapability,
    DEFAULT_CLIENT_CAPABILITIES,
)
from docbridge.mcp.capabilities.server import (
    ServerCapabilities,
    FeatureCapability,
)
from docbridge.mcp.capabilities.negotiation import (
    ClientInfo,
    ServerInfo,
    NegotiationResult,
    IncompatibleProtocolError,
    negotiate_capabilities,
    PROTOCOL_VERSION,
    SUPPORTED_VERSIONS,
)

__all__ = [
    "ClientCapabilities",
    "SamplingCapability",
    "DEFAULT_CLIENT_CAPABILITIES",
    "ServerCapabilities",
    "FeatureCapability",
    "ClientInfo",
    "ServerInfo",
    "NegotiationResult",
    "IncompatibleProtocolError",
    "negotiate_capabilities",
    "PROTOCOL_VERSION",
    "SUPPORTED_VERSIONS",
]
