"""JSON-RPC 2.0 frames exchanged with an MCP server over stdio.

Every line on the wire decodes to one of three frame kinds. Requests and
responses carry an id; the server may reuse any id space it likes (the
reference servers use strings, we send integers), so ids are compared
by their string form in the correlation table, never here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

JSONRPC_VERSION = "2.0"

RequestId = str | int
Frame = dict[str, Any]


class FrameKind(Enum):
    """What an inbound frame is, judged by its fields."""

    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    INVALID = "invalid"


def _valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def classify(frame: Frame) -> FrameKind:
    """
    Sort a decoded frame into request, response or notification.

    A frame with a method and an id is a server request; a method without
    an id is a notification; an id with result or error is a response.
    Anything else, including a wrong ``jsonrpc`` version, is INVALID.
    """
    if frame.get("jsonrpc", JSONRPC_VERSION) != JSONRPC_VERSION:
        return FrameKind.INVALID

    method = frame.get("method")
    if method is not None:
        if not isinstance(method, str):
            return FrameKind.INVALID
        if "id" not in frame:
            return FrameKind.NOTIFICATION
        return FrameKind.REQUEST if _valid_id(frame["id"]) else FrameKind.INVALID

    if "id" in frame and ("result" in frame or "error" in frame):
        return FrameKind.RESPONSE
    return FrameKind.INVALID


def _frame(**fields: Any) -> Frame:
    frame: Frame = {"jsonrpc": JSONRPC_VERSION}
    frame.update((key, value) for key, value in fields.items() if value is not None)
    return frame


@dataclass
class JSONRPCRequest:
    """A call expecting exactly one response with the same id."""

    method: str
    id: RequestId
    params: dict[str, Any] | None = None

    def to_dict(self) -> Frame:
        return _frame(id=self.id, method=self.method, params=self.params)

    @classmethod
    def from_dict(cls, data: Frame) -> "JSONRPCRequest":
        return cls(method=data["method"], id=data["id"], params=data.get("params"))

    def __str__(self) -> str:
        return f"Request({self.method}, id={self.id})"


@dataclass
class JSONRPCNotification:
    """A one-way message; no response is sent or expected."""

    method: str
    params: dict[str, Any] | None = None

    def to_dict(self) -> Frame:
        return _frame(method=self.method, params=self.params)

    @classmethod
    def from_dict(cls, data: Frame) -> "JSONRPCNotification":
        return cls(method=data["method"], params=data.get("params"))

    def __str__(self) -> str:
        return f"Notification({self.method})"


@dataclass
class JSONRPCError:
    """The error member of a failed response."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (("code", self.code), ("message", self.message), ("data", self.data))
            if value is not None
        }

    @classmethod
    def from_dict(cls, data: Any) -> "JSONRPCError":
        if not isinstance(data, dict):
            # Some servers send a bare string as the error
            return cls(code=-32603, message=str(data))
        code = data.get("code")
        return cls(
            code=code if isinstance(code, int) else -32603,
            message=str(data.get("message") or "Unknown error"),
            data=data.get("data"),
        )


@dataclass
class JSONRPCResponse:
    """
    Reply to a request: exactly one of result or error.

    A success response always carries a result member, ``{}`` when the
    handler returned nothing, since ``null`` results trip up some servers.
    """

    id: RequestId | None
    result: Any = None
    error: JSONRPCError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Frame:
        frame: Frame = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            frame["error"] = self.error.to_dict()
        else:
            frame["result"] = {} if self.result is None else self.result
        return frame

    @classmethod
    def from_dict(cls, data: Frame) -> "JSONRPCResponse":
        raw_error = data.get("error")
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=None if raw_error is None else JSONRPCError.from_dict(raw_error),
        )

    @classmethod
    def success(cls, id: RequestId | None, result: Any = None) -> "JSONRPCResponse":
        return cls(id=id, result=result)

    @classmethod
    def error_response(
        cls,
        id: RequestId | None,
        code: int,
        message: str,
        data: Any = None,
    ) -> "JSONRPCResponse":
        return cls(id=id, error=JSONRPCError(code=code, message=message, data=data))

    def __str__(self) -> str:
        if self.error is not None:
            return f"Response(id={self.id}, error={self.error.code})"
        return f"Response(id={self.id}, success)"
