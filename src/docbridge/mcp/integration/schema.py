"""
Translation between MCP tool schemas and chat-completion function calling.

MCP format:
    {"name": "...", "description": "...", "inputSchema": {...}}

Function calling format:
    {"type": "function", "function": {"name": "...", "description": "...", "parameters": {...}}}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union, TYPE_CHECKING

from docbridge.lib import oj

if TYPE_CHECKING:
    from docbridge.mcp.integration.registry import Tool

logger = logging.getLogger(__name__)

UNKNOWN_TOOL = "unknown_tool"
EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def to_function_schema(tool: "Tool | dict[str, Any]") -> dict[str, Any]:
    """
    Convert an MCP tool to a function declaration.

    The input schema passes through untouched. A missing or empty
    description falls back to the tool name.
    """
    if isinstance(tool, dict):
        name = tool["name"]
        description = tool.get("description")
        input_schema = tool.get("inputSchema")
    else:
        name = tool.name
        description = tool.description
        input_schema = tool.input_schema

    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description or name,
            "parameters": input_schema or dict(EMPTY_OBJECT_SCHEMA),
        },
    }


def parse_arguments(raw: Any) -> dict[str, Any]:
    """
    Turn raw tool-call arguments into a dict. Never raises.

    Objects pass through unchanged, strings are parsed as JSON, and
    anything unparseable becomes an empty dict.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return {}
        try:
            parsed = oj.loads(raw)
        except oj.JSONDecodeError:
            logger.warning(f"Unparseable tool arguments, using none: {raw[:200]!r}")
            return {}
        if isinstance(parsed, dict):
            return parsed
    logger.warning(f"Tool arguments are not an object, using none: {type(raw).__name__}")
    return {}


@dataclass(frozen=True)
class FunctionToolCall:
    """``{"id", "type": "function", "function": {"name", "arguments"}}``"""

    call_id: str
    name: str
    arguments: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "FunctionToolCall | None":
        function = payload.get("function")
        if payload.get("type", "function") != "function" or not isinstance(function, dict):
            return None
        name = function.get("name")
        if not isinstance(name, str) or not name:
            return None
        return cls(str(payload.get("id", "")), name, function.get("arguments"))


@dataclass(frozen=True)
class CustomToolCall:
    """``{"id", "type": "custom", "custom": {"name", "input"}}``"""

    call_id: str
    name: str
    input: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CustomToolCall | None":
        custom = payload.get("custom")
        if not isinstance(custom, dict):
            return None
        name = custom.get("name")
        if not isinstance(name, str) or not name:
            return None
        return cls(str(payload.get("id", "")), name, custom.get("input"))


@dataclass(frozen=True)
class BareToolCall:
    """``{"id", "name", "arguments"}`` with no wrapper object."""

    call_id: str
    name: str
    arguments: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BareToolCall | None":
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            return None
        arguments = payload.get("arguments", payload.get("input"))
        return cls(str(payload.get("id", "")), name, arguments)


ToolCallPayload = Union[FunctionToolCall, CustomToolCall, BareToolCall]

# Order matters: the first shape that matches wins
PAYLOAD_SHAPES: tuple[type, ...] = (FunctionToolCall, CustomToolCall, BareToolCall)


@dataclass(frozen=True)
class ToolCallRequest:
    """A model-issued tool call, normalized."""

    call_id: str
    tool_name: str
    raw_arguments: Any = None

    @property
    def arguments(self) -> dict[str, Any]:
        return parse_arguments(self.raw_arguments)


def parse_tool_call(payload: Any) -> ToolCallPayload | None:
    """Match a raw tool-call payload against the known shapes."""
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        return None
    for shape in PAYLOAD_SHAPES:
        call = shape.from_payload(payload)
        if call is not None:
            return call
    return None


def resolve_tool_call(payload: Any) -> ToolCallRequest:
    """
    Resolve the tool name and arguments of a model tool call.

    Falls back to ``unknown_tool`` with no arguments when no shape matches.
    """
    call = parse_tool_call(payload)
    if isinstance(call, FunctionToolCall):
        return ToolCallRequest(call.call_id, call.name, call.arguments)
    if isinstance(call, CustomToolCall):
        return ToolCallRequest(call.call_id, call.name, call.input)
    if isinstance(call, BareToolCall):
        return ToolCallRequest(call.call_id, call.name, call.arguments)

    call_id = payload.get("id", "") if isinstance(payload, dict) else ""
    logger.warning(f"Unrecognized tool call payload: {payload!r}")
    return ToolCallRequest(str(call_id), UNKNOWN_TOOL, None)


def extract_tool_text(result: Any) -> str:
    """
    Canonical text output of a tools/call result.

    The first content element carrying text wins; otherwise the content
    list, even an empty one, is rendered as JSON (the whole result when
    there is no content list).
    """
    content = result.get("content") if isinstance(result, dict) else None
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                return part["text"]
        return oj.dumps(content)
    return oj.dumps(result)
