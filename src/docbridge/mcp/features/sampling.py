"""Sampling feature: serving sampling/createMessage requests from the server."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, TYPE_CHECKING

if TYPE_CHECKING:
    from docbridge.mcp.integration.llm_adapter import LLMInterface
    from docbridge.mcp.protocol.client import MCPClient

logger = logging.getLogger(__name__)

SAMPLING_METHOD = "sampling/createMessage"
DEFAULT_MAX_TOKENS = 512

StopReason = Literal["endTurn", "stopSequence", "maxTokens"]


class SamplingFailure(Exception):
    """The language model could not produce a completion for the server."""

    pass


def content_blocks(content: Any) -> list[dict[str, Any]]:
    """Normalize a message's content to a list of blocks."""
    if isinstance(content, list):
        return [block for block in content if isinstance(block, dict)]
    if isinstance(content, dict):
        return [content]
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return []


def sampling_prompt(messages: list[dict[str, Any]]) -> str:
    """
    Join the text of every message into one prompt, one block per line.

    Image, audio and other non-text blocks are skipped.
    """
    texts: list[str] = []
    for message in messages:
        if not isinstance(message, dict):
            continue
        for block in content_blocks(message.get("content")):
            if block.get("type") == "text" and isinstance(block.get("text"), str):
                texts.append(block["text"])
    return "\n".join(texts)


@dataclass
class SamplingRequest:
    """Server request for an LLM completion."""

    messages: list[dict[str, Any]] = field(default_factory=list)
    max_tokens: int | None = None
    system_prompt: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, params: dict[str, Any] | None) -> "SamplingRequest":
        """Parse from MCP request params; missing fields take defaults."""
        params = params or {}
        messages = params.get("messages")
        max_tokens = params.get("maxTokens")
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
            max_tokens = None
        return cls(
            messages=messages if isinstance(messages, list) else [],
            max_tokens=max_tokens,
            system_prompt=params.get("systemPrompt"),
            metadata=params.get("_meta"),
        )

    @property
    def prompt(self) -> str:
        return sampling_prompt(self.messages)


@dataclass
class SamplingResult:
    """Reply envelope for sampling/createMessage."""

    model: str
    text: str = ""
    role: Literal["assistant"] = "assistant"
    stop_reason: StopReason | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "model": self.model,
            "role": self.role,
            "content": {"type": "text", "text": self.text},
        }
        if self.stop_reason is not None:
            result["stopReason"] = self.stop_reason
        return result


@dataclass
class SamplingConfig:
    """Configuration for sampling handler."""

    model: str = "openai/gpt-4o-mini"
    """Model used for every sampling request."""

    default_max_tokens: int = DEFAULT_MAX_TOKENS
    """Token budget when the server does not send maxTokens."""

    timeout: float = 120.0
    """Timeout for one LLM completion in seconds."""


class SamplingHandler:
    """
    Acts as the LLM-completion provider for the connected server.

    The handler never fails the reverse request: if the language model
    errors or times out, the server receives a well-formed result with
    empty text.
    """

    def __init__(
        self,
        llm: "LLMInterface",
        config: SamplingConfig | None = None,
    ):
        self.llm = llm
        self.config = config or SamplingConfig()
        self.request_count = 0

    def register_handlers(self, client: "MCPClient") -> None:
        """Register with the client; must happen before connect()."""
        client.on_request(SAMPLING_METHOD, self.handle_request)

    async def handle_request(self, params: dict[str, Any] | None) -> dict[str, Any]:
        """Handle sampling/createMessage from the server."""
        request = SamplingRequest.from_dict(params)
        self.request_count += 1
        max_tokens = request.max_tokens or self.config.default_max_tokens

        logger.info(
            f"Received sampling request with {len(request.messages)} messages "
            f"(max_tokens={max_tokens})"
        )

        try:
            result = await self._complete(request.prompt, max_tokens)
        except SamplingFailure as e:
            logger.warning(f"Sampling failed, replying with empty text: {e}")
            result = SamplingResult(model=self.config.model, stop_reason="endTurn")

        return result.to_dict()

    async def _complete(self, prompt: str, max_tokens: int) -> SamplingResult:
        try:
            response = await asyncio.wait_for(
                self.llm.chat_completion(
                    model=self.config.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise SamplingFailure(f"Timed out after {self.config.timeout}s") from e
        except Exception as e:
            raise SamplingFailure(str(e) or type(e).__name__) from e

        if hasattr(response, "model_dump"):
            response = response.model_dump()
        if not isinstance(response, dict):
            raise SamplingFailure(f"Unexpected completion type: {type(response).__name__}")
        choices = response.get("choices") or []
        if not isinstance(choices, list):
            raise SamplingFailure("Completion choices is not a list")
        if not choices:
            return SamplingResult(model=self.config.model, stop_reason="endTurn")

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise SamplingFailure("Completion has no message")
        text = message.get("content") or ""
        if not isinstance(text, str):
            text = ""

        logger.debug(f"Sampling produced {len(text)} characters")
        return SamplingResult(
            model=self.config.model,
            text=text,
            stop_reason=_map_stop_reason(choice.get("finish_reason")),
        )


def _map_stop_reason(finish_reason: str | None) -> StopReason:
    """Map a chat-completion finish reason to an MCP stop reason."""
    mapping: dict[str, StopReason] = {
        "stop": "endTurn",
        "length": "maxTokens",
        "max_tokens": "maxTokens",
        "tool_calls": "endTurn",
        "content_filter": "endTurn",
    }
    if not isinstance(finish_reason, str):
        return "endTurn"
    return mapping.get(finish_reason, "endTurn")
