"""
MCP (Model Context Protocol) client and tool-orchestration bridge.

A direct MCP client talks to a server subprocess over stdio; the
integration layer hands the server's tools to a chat model through the
Dedalus SDK and serves the server's sampling requests with the same model.

Submodules:
- transport: stdio subprocess transport
- protocol: JSON-RPC 2.0 protocol implementation
- capabilities: initialize handshake and capability negotiation
- features: sampling handler
- integration: registry, schema translation, orchestration loop, session
- utilities: ping, server logging, pagination, URI templates
- config: server definitions and environment settings
"""

# Transport layer
from docbridge.mcp.transport import (
    StdioTransport,
    StdioServerParameters,
    Transport,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
    FramingError,
)

# Protocol layer
from docbridge.mcp.protocol import (
    MCPClient,
    MCPError,
    ProtocolState,
    ProtocolStateMachine,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
)

# Capabilities
from docbridge.mcp.capabilities import (
    ClientCapabilities,
    ServerCapabilities,
    NegotiationResult,
    negotiate_capabilities,
)

# Features
from docbridge.mcp.features import (
    SamplingHandler,
    SamplingRequest,
    SamplingResult,
    SamplingFailure,
)

# Integration
from docbridge.mcp.integration import (
    BridgeSession,
    SessionOptions,
    CapabilityRegistry,
    ToolOrchestrator,
    DedalusLLMAdapter,
    ToolDispatchError,
    MissingResourceError,
)

# Utilities
from docbridge.mcp.utilities import (
    PingHandler,
    LoggingHandler,
    PaginatedListHelper,
    PaginationError,
    MissingParameterError,
    expand_uri_template,
    ping_server,
)

# Config
from docbridge.mcp.config import (
    BridgeSettings,
    MCPServerConfig,
    ConfigError,
    load_mcp_config,
)

__all__ = [
    # Transport
    "StdioTransport",
    "StdioServerParameters",
    "Transport",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "SessionError",
    "FramingError",
    # Protocol
    "MCPClient",
    "MCPError",
    "ProtocolState",
    "ProtocolStateMachine",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCNotification",
    # Capabilities
    "ClientCapabilities",
    "ServerCapabilities",
    "NegotiationResult",
    "negotiate_capabilities",
    # Features
    "SamplingHandler",
    "SamplingRequest",
    "SamplingResult",
    "SamplingFailure",
    # Integration
    "BridgeSession",
    "SessionOptions",
    "CapabilityRegistry",
    "ToolOrchestrator",
    "DedalusLLMAdapter",
    "ToolDispatchError",
    "MissingResourceError",
    # Utilities
    "PingHandler",
    "LoggingHandler",
    "PaginatedListHelper",
    "PaginationError",
    "MissingParameterError",
    "expand_uri_template",
    "ping_server",
    # Config
    "BridgeSettings",
    "MCPServerConfig",
    "ConfigError",
    "load_mcp_config",
]
