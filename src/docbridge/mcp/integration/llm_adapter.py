"""LLM API boundary shared by the orchestrator and the sampling bridge."""

from __future__ import annotations

from typing import Any, Protocol

from dedalus_labs import AsyncDedalus


class LLMInterface(Protocol):
    """
    Protocol for chat-completion calls.

    Responses are plain dicts in the OpenAI chat-completion shape
    (``choices[0].message`` with ``content`` and optional ``tool_calls``).
    """

    async def chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Execute a chat completion.

        Args:
            model: Model identifier.
            messages: Conversation messages.
            max_tokens: Maximum tokens in response.
            tools: Function declarations the model may call.
            tool_choice: Tool selection strategy.

        Returns:
            Chat completion response.
        """
        ...


class DedalusLLMAdapter:
    """Adapts the Dedalus SDK client to LLMInterface."""

    def __init__(self, client: AsyncDedalus):
        self.client = client

    @classmethod
    def from_api_key(cls, api_key: str) -> "DedalusLLMAdapter":
        """Build an adapter around a fresh AsyncDedalus client."""
        return cls(AsyncDedalus(api_key=api_key))

    async def chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Execute chat completion via Dedalus SDK.

        Args:
            model: Model identifier (e.g., "openai/gpt-4o-mini").
            messages: Conversation messages in OpenAI format.
            max_tokens: Optional token budget.
            tools: Optional tool definitions.
            tool_choice: Optional tool selection strategy.

        Returns:
            Chat completion response as a dict.
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
        }

        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = tools
        if tool_choice:
            kwargs["tool_choice"] = tool_choice

        response = await self.client.chat.completions.create(**kwargs)

        if hasattr(response, "model_dump"):
            return response.model_dump()
        elif hasattr(response, "dict"):
            return response.dict()
        else:
            return dict(response)

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()


class MockLLMAdapter:
    """
    Mock LLM adapter for testing.

    Returns canned responses in order, then a default text reply.
    A response that is an exception instance is raised instead.
    """

    def __init__(self, responses: list[dict[str, Any] | Exception] | None = None):
        self.responses = list(responses or [])
        self.call_history: list[dict[str, Any]] = []
        self._response_index = 0

    async def chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Record call and return mock response."""
        self.call_history.append({
            "model": model,
            "messages": [dict(m) for m in messages],
            "max_tokens": max_tokens,
            "tools": tools,
            "tool_choice": tool_choice,
        })

        if self._response_index < len(self.responses):
            response = self.responses[self._response_index]
            self._response_index += 1
            if isinstance(response, Exception):
                raise response
            return response

        return text_completion("Mock response for testing.", model=model)


def text_completion(
    text: str | None,
    model: str = "mock-model",
    finish_reason: str = "stop",
) -> dict[str, Any]:
    """Build a chat-completion dict carrying a single text answer."""
    return {
        "id": "mock-completion-id",
        "object": "chat.completion",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": finish_reason,
            }
        ],
    }


def tool_call_completion(
    calls: list[tuple[str, str, Any]],
    model: str = "mock-model",
) -> dict[str, Any]:
    """Build a chat-completion dict requesting (call_id, name, arguments) calls."""
    return {
        "id": "mock-completion-id",
        "object": "chat.completion",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": name, "arguments": arguments},
                        }
                        for call_id, name, arguments in calls
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ],
    }
