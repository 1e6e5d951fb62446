"""Error replies and JSON-RPC error codes."""

from dataclasses import dataclass
from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP reserves -32002 for "resource not found"
RESOURCE_NOT_FOUND = -32002

# Codes servers use for an unknown resource, prompt or tool name
NOT_FOUND_CODES = frozenset({RESOURCE_NOT_FOUND, INVALID_PARAMS})


@dataclass
class MCPError(Exception):
    """
    Error reply from the remote endpoint.

    Raised when a request is answered with a JSON-RPC error object, and
    raised by request handlers to answer the server with one. Channel-level
    failures are TransportError, not MCPError.
    """

    code: int
    message: str
    data: Any = None

    def __post_init__(self):
        super().__init__(self.message)

    @property
    def is_not_found(self) -> bool:
        """True if the server could not find the named resource or prompt."""
        return self.code in NOT_FOUND_CODES

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict[str, Any]) -> "MCPError":
        return cls(
            code=error.get("code", INTERNAL_ERROR),
            message=error.get("message", "Unknown error"),
            data=error.get("data"),
        )

    @classmethod
    def method_not_found(cls, method: str) -> "MCPError":
        return cls(code=METHOD_NOT_FOUND, message=f"Method not found: {method}")

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"MCPError(code={self.code}, message={self.message!r})"
