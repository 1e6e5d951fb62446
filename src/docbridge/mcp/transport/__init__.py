"""
MCP Transport Layer.

Implements the stdio subprocess transport: newline-delimited JSON-RPC
over a child process's stdin/stdout.
"""

from docbridge.mcp.transport.types import (
    StdioServerParameters,
    TransportEvent,
    TransportEventType,
)
from docbridge.mcp.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
    FramingError,
)
from docbridge.mcp.transport.stdio import StdioTransport

__all__ = [
    "Transport",
    "StdioServerParameters",
    "TransportEvent",
    "TransportEventType",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "SessionError",
    "FramingError",
    "StdioTransport",
]
