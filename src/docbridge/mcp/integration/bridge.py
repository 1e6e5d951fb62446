"""Bridge session: one MCP server connection plus the LLM that serves it."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from docbridge.mcp.capabilities import (
    ClientCapabilities,
    DEFAULT_CLIENT_CAPABILITIES,
    NegotiationResult,
    negotiate_capabilities,
)
from docbridge.mcp.config import DEFAULT_MODEL, BridgeSettings, MCPServerConfig
from docbridge.mcp.features.sampling import (
    DEFAULT_MAX_TOKENS,
    SamplingConfig,
    SamplingHandler,
)
from docbridge.mcp.integration.errors import MissingResourceError
from docbridge.mcp.integration.llm_adapter import DedalusLLMAdapter, LLMInterface
from docbridge.mcp.integration.orchestrator import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_SYSTEM_PROMPT,
    OrchestrationResult,
    ToolOrchestrator,
)
from docbridge.mcp.integration.registry import (
    CapabilityRegistry,
    Prompt,
    Resource,
    ResourceTemplate,
    Tool,
)
from docbridge.mcp.protocol import MCPClient, MCPError
from docbridge.mcp.transport import StdioTransport
from docbridge.mcp.transport.types import StderrPolicy
from docbridge.mcp.utilities import (
    LoggingHandler,
    PingHandler,
    expand_uri_template,
    is_template,
    ping_server,
)

if TYPE_CHECKING:
    from docbridge.mcp.transport.types import StdioServerParameters

logger = logging.getLogger(__name__)

PROMPT_FAILURE_TEXT = "Failed to run prompt with the language model."


@dataclass
class PromptRun:
    """One prompt message and the model's answer to it."""

    prompt: str
    completion: str
    ok: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "completion": self.completion, "ok": self.ok}


@dataclass
class SessionOptions:
    """Tunables for a BridgeSession."""

    model: str = DEFAULT_MODEL
    sampling_model: str | None = None
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_iterations: int | None = DEFAULT_MAX_ITERATIONS
    request_timeout: float = 60.0
    connect_timeout: float = 10.0
    stderr: StderrPolicy = "ignore"
    client_capabilities: ClientCapabilities = field(
        default_factory=lambda: DEFAULT_CLIENT_CAPABILITIES
    )


class BridgeSession:
    """
    An explicitly constructed connection to one MCP server.

    connect() spawns the server, runs the initialize handshake and
    discovers capabilities. Handlers for sampling, ping and server log
    notifications are registered before the process starts, since the
    server may call back as soon as the channel is up. close() tears the
    process down; a later call reconnects and re-discovers.
    """

    def __init__(
        self,
        server: MCPServerConfig,
        llm: LLMInterface,
        options: SessionOptions | None = None,
    ):
        self.server = server
        self.llm = llm
        self.options = options or SessionOptions()

        self.registry = CapabilityRegistry()
        self.sampling = SamplingHandler(
            llm,
            SamplingConfig(model=self.options.sampling_model or self.options.model),
        )
        self.ping_handler = PingHandler()
        self.server_logging = LoggingHandler()

        self._client: MCPClient | None = None
        self._negotiation: NegotiationResult | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        llm: LLMInterface | None = None,
    ) -> "BridgeSession":
        """Build a session from settings, creating the Dedalus client if needed."""
        return cls(
            settings.server,
            llm or DedalusLLMAdapter.from_api_key(settings.api_key),
            SessionOptions(
                model=settings.model,
                sampling_model=settings.sampling_model,
                max_iterations=settings.max_iterations,
                request_timeout=settings.request_timeout,
            ),
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_ready

    @property
    def negotiation(self) -> NegotiationResult | None:
        return self._negotiation

    @property
    def client(self) -> MCPClient | None:
        return self._client

    def server_parameters(self) -> "StdioServerParameters":
        return self.server.to_parameters(stderr=self.options.stderr)

    async def connect(self) -> None:
        """
        Connect, negotiate and discover. No-op when already connected.

        Raises:
            TransportError: If the server cannot be started or the channel fails.
            MCPError: If the server rejects initialization or discovery.
            IncompatibleProtocolError: If the protocol versions do not match.
        """
        async with self._lock:
            if self.is_connected:
                return
            await self._connect()

    async def _connect(self) -> None:
        if self._client is not None:
            # Left over from a server that went away
            await self._client.close()
            self._client = None

        logger.info(f"Connecting to MCP server {self.server.name!r}")
        transport = StdioTransport(self.server_parameters())
        client = MCPClient(transport, request_timeout=self.options.request_timeout)

        self.sampling.register_handlers(client)
        self.ping_handler.register_handlers(client)
        self.server_logging.register_handlers(client)

        try:
            await client.connect()
            negotiation = await negotiate_capabilities(
                client,
                client_capabilities=self.options.client_capabilities,
                timeout=self.options.connect_timeout,
            )
            await self.registry.discover(client, negotiation.server_capabilities)
        except BaseException:
            await client.close()
            raise

        self._client = client
        self._negotiation = negotiation
        logger.info(f"Bridge session ready: {negotiation}")

    async def ensure_connected(self) -> MCPClient:
        """Connect on first use and return the live client."""
        if not self.is_connected:
            await self.connect()
        assert self._client is not None
        return self._client

    async def close(self) -> None:
        """Disconnect and stop the server process."""
        async with self._lock:
            client, self._client = self._client, None
            self._negotiation = None
            self.registry.clear()
            if client is not None:
                logger.info(f"Closing MCP server {self.server.name!r}")
                await client.close()

    async def list_tools(self, refresh: bool = False) -> list[Tool]:
        await self._ensure_discovered(refresh)
        return list(self.registry.tools)

    async def list_resources(self, refresh: bool = False) -> list[Resource]:
        await self._ensure_discovered(refresh)
        return list(self.registry.resources)

    async def list_resource_templates(self, refresh: bool = False) -> list[ResourceTemplate]:
        await self._ensure_discovered(refresh)
        return list(self.registry.resource_templates)

    async def list_prompts(self, refresh: bool = False) -> list[Prompt]:
        await self._ensure_discovered(refresh)
        return list(self.registry.prompts)

    async def _ensure_discovered(self, refresh: bool) -> None:
        client = await self.ensure_connected()
        if refresh:
            capabilities = self._negotiation.server_capabilities if self._negotiation else None
            await self.registry.discover(client, capabilities)

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Invoke a tool on the server.

        Raises:
            TransportError: If the channel fails.
            MCPError: If the server rejects the call.
        """
        client = await self.ensure_connected()
        logger.debug(f"tools/call {name} {arguments}")
        return await client.request(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
        )

    async def read_resource(
        self,
        uri: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Read a resource, expanding a URI template with ``params`` first.

        A resource the server cannot find comes back as a content entry
        whose text is ``{"error": ...}``.

        Raises:
            MissingParameterError: If a template placeholder has no value.
            TransportError: If the channel fails.
        """
        if is_template(uri):
            uri = expand_uri_template(
                uri, {k: str(v) for k, v in (params or {}).items()}
            )

        client = await self.ensure_connected()
        try:
            return await client.request("resources/read", {"uri": uri})
        except MCPError as e:
            error = MissingResourceError(uri, e.message, e.code)
            log = logger.info if e.is_not_found else logger.warning
            log(f"Resource {uri} not readable: {e.message}")
            return error.resource_payload()

    async def get_prompt(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Fetch a prompt rendered with ``arguments``.

        An unknown prompt comes back as a message whose text is
        ``{"error": ...}``.
        """
        client = await self.ensure_connected()
        try:
            return await client.request(
                "prompts/get",
                {
                    "name": name,
                    "arguments": {k: str(v) for k, v in (arguments or {}).items()},
                },
            )
        except MCPError as e:
            error = MissingResourceError(name, e.message, e.code)
            log = logger.info if e.is_not_found else logger.warning
            log(f"Prompt {name} not available: {e.message}")
            return error.prompt_payload()

    async def run_prompt(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> list[PromptRun]:
        """Fetch a prompt and run each of its text messages through the model."""
        prompt = await self.get_prompt(name, arguments)
        runs: list[PromptRun] = []

        for message in prompt.get("messages") or []:
            content = message.get("content") if isinstance(message, dict) else None
            if not isinstance(content, dict) or content.get("type") != "text":
                continue
            text = content.get("text") or ""
            runs.append(await self._complete_prompt(text))

        return runs

    async def _complete_prompt(self, text: str) -> PromptRun:
        try:
            response = await self.llm.chat_completion(
                model=self.options.model,
                messages=[{"role": "user", "content": text}],
                max_tokens=DEFAULT_MAX_TOKENS,
            )
        except Exception as e:
            logger.warning(f"Prompt completion failed: {e}")
            return PromptRun(prompt=text, completion=PROMPT_FAILURE_TEXT, ok=False)

        choices = response.get("choices") or []
        message = {}
        if choices:
            message = (choices[0] or {}).get("message") or {}
        return PromptRun(prompt=text, completion=message.get("content") or "")

    def orchestrator(self) -> ToolOrchestrator:
        return ToolOrchestrator(
            self.llm,
            self.call_tool,
            model=self.options.model,
            system_prompt=self.options.system_prompt,
            max_iterations=self.options.max_iterations,
        )

    async def query(self, text: str) -> OrchestrationResult:
        """Answer a query with the discovered tools available to the model."""
        await self.ensure_connected()
        return await self.orchestrator().run(text, self.registry.tools)

    async def ping(self) -> bool:
        if not self.is_connected:
            return False
        assert self._client is not None
        return await ping_server(self._client)

    async def __aenter__(self) -> "BridgeSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
