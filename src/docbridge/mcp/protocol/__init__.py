"""
MCP Protocol Core.

Implements JSON-RPC 2.0 message framing, request/response correlation,
and the protocol state machine.
"""

from docbridge.mcp.protocol.messages import (
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
    JSONRPCError,
    FrameKind,
    classify,
)
from docbridge.mcp.protocol.errors import (
    MCPError,
    PARSE_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
    RESOURCE_NOT_FOUND,
)
from docbridge.mcp.protocol.state import (
    ProtocolState,
    ProtocolStateMachine,
    InvalidStateTransition,
)
from docbridge.mcp.protocol.client import MCPClient

__all__ = [
    # Messages
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCNotification",
    "JSONRPCError",
    "FrameKind",
    "classify",
    # Errors
    "MCPError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "RESOURCE_NOT_FOUND",
    # State
    "ProtocolState",
    "ProtocolStateMachine",
    "InvalidStateTransition",
    # Client
    "MCPClient",
]
