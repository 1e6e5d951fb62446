"""Tests for the sampling handler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from docbridge.mcp.features import (
    SamplingConfig,
    SamplingHandler,
    SamplingRequest,
    sampling_prompt,
)
from docbridge.mcp.integration.llm_adapter import MockLLMAdapter, text_completion
from docbridge.mcp.protocol import MCPClient


def text_message(text, role="user"):
    return {"role": role, "content": {"type": "text", "text": text}}


class TestSamplingPrompt:
    def test_joins_text_with_newlines(self):
        messages = [text_message("one"), text_message("two", role="assistant")]
        assert sampling_prompt(messages) == "one\ntwo"

    def test_skips_non_text_content(self):
        messages = [
            text_message("caption"),
            {"role": "user", "content": {"type": "image", "data": "aGk=", "mimeType": "image/png"}},
        ]
        assert sampling_prompt(messages) == "caption"

    def test_content_block_lists(self):
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": "a"},
                {"type": "audio", "data": "", "mimeType": "audio/wav"},
                {"type": "text", "text": "b"},
            ],
        }]
        assert sampling_prompt(messages) == "a\nb"


class TestSamplingRequest:
    def test_invalid_max_tokens_ignored(self):
        assert SamplingRequest.from_dict({"maxTokens": 0}).max_tokens is None
        assert SamplingRequest.from_dict({"maxTokens": "10"}).max_tokens is None
        assert SamplingRequest.from_dict({"maxTokens": 64}).max_tokens == 64

    def test_missing_params(self):
        request = SamplingRequest.from_dict(None)
        assert request.messages == []
        assert request.prompt == ""


class TestSamplingHandler:
    @pytest.mark.asyncio
    async def test_reply_envelope(self):
        llm = MockLLMAdapter([text_completion("Ada Lovelace")])
        handler = SamplingHandler(llm, SamplingConfig(model="openai/gpt-4o-mini"))

        result = await handler.handle_request({
            "messages": [text_message("Generate fake user data.")],
            "maxTokens": 1024,
        })

        assert result == {
            "model": "openai/gpt-4o-mini",
            "role": "assistant",
            "content": {"type": "text", "text": "Ada Lovelace"},
            "stopReason": "endTurn",
        }
        call = llm.call_history[0]
        assert call["messages"] == [{"role": "user", "content": "Generate fake user data."}]
        assert call["max_tokens"] == 1024
        assert call["model"] == "openai/gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_default_token_budget(self):
        llm = MockLLMAdapter()
        await SamplingHandler(llm).handle_request({"messages": [text_message("hi")]})
        assert llm.call_history[0]["max_tokens"] == 512

    @pytest.mark.asyncio
    async def test_length_maps_to_max_tokens(self):
        llm = MockLLMAdapter([text_completion("cut", finish_reason="length")])
        result = await SamplingHandler(llm).handle_request({"messages": []})
        assert result["stopReason"] == "maxTokens"

    @pytest.mark.asyncio
    async def test_empty_completion_gives_empty_text(self):
        llm = MockLLMAdapter([text_completion(None)])
        result = await SamplingHandler(llm).handle_request({"messages": []})
        assert result["content"] == {"type": "text", "text": ""}

    @pytest.mark.asyncio
    async def test_no_choices_gives_empty_text(self):
        llm = MockLLMAdapter([{"choices": []}])
        result = await SamplingHandler(llm).handle_request({"messages": []})
        assert result["content"]["text"] == ""
        assert result["role"] == "assistant"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            {"choices": ["oops"]},
            {"choices": [{"message": "not an object"}]},
            {"choices": "nope"},
            {"choices": [{"message": {"content": "hi"}, "finish_reason": ["stop"]}]},
        ],
    )
    async def test_malformed_completion_keeps_envelope(self, response):
        handler = SamplingHandler(MockLLMAdapter([response]), SamplingConfig(model="m"))

        result = await handler.handle_request({"messages": [text_message("hi")]})

        assert result["model"] == "m"
        assert result["role"] == "assistant"
        assert result["content"]["type"] == "text"
        assert result["stopReason"] == "endTurn"

    @pytest.mark.asyncio
    async def test_llm_failure_degrades_to_empty_text(self, caplog):
        llm = MockLLMAdapter([RuntimeError("rate limited")])
        handler = SamplingHandler(llm, SamplingConfig(model="m"))

        result = await handler.handle_request({"messages": [text_message("hi")]})

        assert result["model"] == "m"
        assert result["role"] == "assistant"
        assert result["content"] == {"type": "text", "text": ""}
        assert "rate limited" in caplog.text

    @pytest.mark.asyncio
    async def test_llm_timeout_degrades_to_empty_text(self):
        async def slow(**kwargs):
            await asyncio.sleep(10)

        llm = AsyncMock()
        llm.chat_completion.side_effect = slow
        handler = SamplingHandler(llm, SamplingConfig(timeout=0.05))

        result = await handler.handle_request({"messages": [text_message("hi")]})
        assert result["content"]["text"] == ""

    def test_register_handlers(self, memory_transport):
        client = MCPClient(memory_transport())
        handler = SamplingHandler(MockLLMAdapter())
        handler.register_handlers(client)
        assert client._request_handlers["sampling/createMessage"] == handler.handle_request
