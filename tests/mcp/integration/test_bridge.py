"""End-to-end tests of BridgeSession against the fake stdio server."""

import asyncio
import dataclasses

import pytest
import pytest_asyncio

from docbridge.lib import oj
from docbridge.mcp.integration.bridge import (
    PROMPT_FAILURE_TEXT,
    BridgeSession,
    SessionOptions,
)
from docbridge.mcp.integration.llm_adapter import (
    MockLLMAdapter,
    text_completion,
    tool_call_completion,
)
from docbridge.mcp.protocol import MCPError
from docbridge.mcp.transport import FramingError, SessionError
from docbridge.mcp.utilities import MissingParameterError

OPTIONS = SessionOptions(model="openai/gpt-4o-mini", request_timeout=15.0)


class PerQueryLLM:
    """Answers each conversation from its own user query."""

    def __init__(self):
        self.sampling_calls = 0

    async def chat_completion(self, model, messages, max_tokens=None, tools=None, tool_choice=None):
        if tools is None:
            self.sampling_calls += 1
            await asyncio.sleep(0)
            return text_completion("Sampled user")

        query = messages[1]["content"]
        if messages[-1]["role"] == "user":
            return tool_call_completion([
                (f"{query}-user", "create-random-user", "{}"),
                (f"{query}-echo", "echo", oj.dumps({"text": query})),
            ])
        outputs = " | ".join(m["content"] for m in messages if m["role"] == "tool")
        return text_completion(f"done {query}: {outputs}")


@pytest_asyncio.fixture
async def make_session(fake_server_config):
    sessions = []

    def make(llm=None, config=None):
        session = BridgeSession(config or fake_server_config, llm or MockLLMAdapter(), OPTIONS)
        sessions.append(session)
        return session

    yield make
    for session in sessions:
        await session.close()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connect_negotiates_and_discovers(self, make_session):
        session = make_session()
        await session.connect()

        assert session.is_connected
        assert session.negotiation.server_info.name == "fake-docs"
        assert session.negotiation.protocol_version == "2025-06-18"

        tools = await session.list_tools()
        assert [t.name for t in tools] == [
            "create-random-user", "echo", "fail", "image-only", "crash", "garbage",
        ]
        assert tools[0].title == "Create Random User"
        assert [r.uri for r in await session.list_resources()] == ["users://all"]
        templates = await session.list_resource_templates()
        assert templates[0].uri_template == "users://{userId}/profile"
        assert [p.name for p in await session.list_prompts()] == ["summarize"]

    @pytest.mark.asyncio
    async def test_server_log_forwarded(self, make_session):
        session = make_session()
        await session.connect()
        assert session.server_logging.message_count == 1

    @pytest.mark.asyncio
    async def test_lazy_connect_on_first_use(self, make_session):
        session = make_session()
        assert not session.is_connected
        result = await session.call_tool("echo", {"text": "hello"})
        assert result["content"][0]["text"] == "hello"
        assert session.is_connected

    @pytest.mark.asyncio
    async def test_ping_and_close(self, make_session):
        session = make_session()
        assert await session.ping() is False
        await session.connect()
        assert await session.ping() is True

        await session.close()
        assert not session.is_connected
        assert session.registry.tools == ()
        assert await session.ping() is False

        await session.connect()
        assert len(await session.list_tools()) == 6

    @pytest.mark.asyncio
    async def test_capability_gating(self, make_session, fake_server_config):
        config = dataclasses.replace(
            fake_server_config, env={"FAKE_MCP_CAPABILITIES": "tools"}
        )
        session = make_session(config=config)
        await session.connect()
        assert len(await session.list_tools()) == 6
        assert await session.list_resources() == []
        assert await session.list_prompts() == []

    @pytest.mark.asyncio
    async def test_server_exit_then_reconnect(self, make_session):
        session = make_session()
        await session.connect()

        with pytest.raises(SessionError, match="exited with code 3"):
            await session.call_tool("crash")
        assert not session.is_connected

        result = await session.call_tool("echo", {"text": "back"})
        assert result["content"][0]["text"] == "back"

    @pytest.mark.asyncio
    async def test_malformed_frame_fails_request(self, make_session):
        session = make_session()
        await session.connect()
        with pytest.raises(FramingError):
            await session.call_tool("garbage")


class TestOperations:
    @pytest.mark.asyncio
    async def test_tool_error(self, make_session):
        session = make_session()
        with pytest.raises(MCPError, match="tool exploded"):
            await session.call_tool("fail")

    @pytest.mark.asyncio
    async def test_sampling_during_tool_call(self, make_session):
        llm = MockLLMAdapter([text_completion("Ada Lovelace, ada@example.com")])
        session = make_session(llm)

        result = await session.call_tool("create-random-user")

        assert [c["text"] for c in result["content"]] == [
            "User 7 created successfully",
            "Ada Lovelace, ada@example.com",
        ]
        sampling_call = llm.call_history[0]
        assert sampling_call["messages"] == [
            {"role": "user", "content": "Generate fake user data."}
        ]
        assert sampling_call["max_tokens"] == 1024
        assert session.sampling.request_count == 1

    @pytest.mark.asyncio
    async def test_sampling_failure_does_not_break_tool_call(self, make_session):
        llm = MockLLMAdapter([RuntimeError("quota exceeded")])
        session = make_session(llm)

        result = await session.call_tool("create-random-user")

        assert result["content"][0]["text"] == "User 7 created successfully"
        assert result["content"][1]["text"] == ""

    @pytest.mark.asyncio
    async def test_read_template_resource(self, make_session):
        session = make_session()
        result = await session.read_resource("users://{userId}/profile", {"userId": 7})
        content = result["contents"][0]
        assert content["uri"] == "users://7/profile"
        assert oj.loads(content["text"])["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_read_template_missing_param(self, make_session):
        session = make_session()
        with pytest.raises(MissingParameterError, match="userId"):
            await session.read_resource("users://{userId}/profile")

    @pytest.mark.asyncio
    async def test_unknown_resource_becomes_error_payload(self, make_session):
        session = make_session()
        result = await session.read_resource("files://nothing")
        content = result["contents"][0]
        assert content["uri"] == "files://nothing"
        assert oj.loads(content["text"]) == {"error": "Resource not found: files://nothing"}

    @pytest.mark.asyncio
    async def test_get_prompt(self, make_session):
        session = make_session()
        result = await session.get_prompt("summarize", {"topic": "MCP"})
        assert result["messages"][0]["content"]["text"] == "Summarize MCP"

    @pytest.mark.asyncio
    async def test_unknown_prompt_becomes_error_payload(self, make_session):
        session = make_session()
        result = await session.get_prompt("nope")
        text = result["messages"][0]["content"]["text"]
        assert oj.loads(text) == {"error": "Prompt not found: nope"}

    @pytest.mark.asyncio
    async def test_run_prompt(self, make_session):
        llm = MockLLMAdapter([text_completion("MCP is a protocol.")])
        session = make_session(llm)

        runs = await session.run_prompt("summarize", {"topic": "MCP"})

        assert len(runs) == 1
        assert runs[0].prompt == "Summarize MCP"
        assert runs[0].completion == "MCP is a protocol."
        assert llm.call_history[0]["max_tokens"] == 512

    @pytest.mark.asyncio
    async def test_run_prompt_llm_failure(self, make_session):
        session = make_session(MockLLMAdapter([RuntimeError("api down")]))
        runs = await session.run_prompt("summarize", {"topic": "MCP"})
        assert runs[0].completion == PROMPT_FAILURE_TEXT
        assert runs[0].ok is False


class TestQuery:
    @pytest.mark.asyncio
    async def test_query_with_reentrant_sampling(self, make_session):
        llm = MockLLMAdapter([
            tool_call_completion([("call_1", "create-random-user", "{}")]),
            text_completion("Grace Hopper"),
            text_completion("Created user 7."),
        ])
        session = make_session(llm)

        result = await session.query("list users")

        assert result.content == "Created user 7."
        assert len(result.conversation) == 5
        tool_message = result.conversation.to_list()[3]
        assert tool_message == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "User 7 created successfully",
        }
        assert len(llm.call_history) == 3
        assert llm.call_history[1]["messages"] == [
            {"role": "user", "content": "Generate fake user data."}
        ]

    @pytest.mark.asyncio
    async def test_query_tool_failure_reaches_model(self, make_session):
        llm = MockLLMAdapter([
            tool_call_completion([("call_1", "fail", "{}")]),
            text_completion("The tool failed."),
        ])
        session = make_session(llm)

        result = await session.query("try it")

        assert result.conversation.to_list()[3]["content"] == "ERROR calling fail: tool exploded"
        assert result.content == "The tool failed."

    @pytest.mark.asyncio
    async def test_concurrent_queries_share_the_channel(self, make_session):
        llm = PerQueryLLM()
        session = make_session(llm)
        await session.connect()

        alpha, beta = await asyncio.gather(session.query("alpha"), session.query("beta"))

        assert alpha.content == "done alpha: User 7 created successfully | alpha"
        assert beta.content == "done beta: User 7 created successfully | beta"
        assert [r.call_id for r in alpha.tool_results] == ["alpha-user", "alpha-echo"]
        assert [r.call_id for r in beta.tool_results] == ["beta-user", "beta-echo"]
        assert llm.sampling_calls == 2
        assert session.sampling.request_count == 2
