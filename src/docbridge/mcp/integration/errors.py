"""Errors raised by the bridge integration layer."""

from __future__ import annotations

from typing import Any

from docbridge.lib import oj


class ToolDispatchError(Exception):
    """A single tool call failed; the conversation carries on."""

    def __init__(self, tool_name: str, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.tool_name = tool_name
        self.message = message
        self.cause = cause

    def as_result_text(self) -> str:
        """Text placed in the tool-role message in place of a result."""
        return f"ERROR calling {self.tool_name}: {self.message}"


class MissingResourceError(Exception):
    """A resource or prompt the server does not know about."""

    def __init__(self, target: str, message: str, code: int | None = None):
        super().__init__(message)
        self.target = target
        self.message = message
        self.code = code

    @property
    def error_text(self) -> str:
        return oj.dumps({"error": self.message})

    def resource_payload(self) -> dict[str, Any]:
        """Shape of a resources/read result carrying the error."""
        return {
            "contents": [
                {
                    "uri": self.target,
                    "mimeType": "application/json",
                    "text": self.error_text,
                }
            ]
        }

    def prompt_payload(self) -> dict[str, Any]:
        """Shape of a prompts/get result carrying the error."""
        return {
            "messages": [
                {
                    "role": "assistant",
                    "content": {"type": "text", "text": self.error_text},
                }
            ]
        }
