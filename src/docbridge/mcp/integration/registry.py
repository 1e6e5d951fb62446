"""Capability registry: the discovered tools, resources and prompts of a server."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from docbridge.mcp.capabilities.server import ALL_LISTINGS
from docbridge.mcp.transport.base import SessionError
from docbridge.mcp.utilities.pagination import PaginatedListHelper
from docbridge.mcp.utilities.uri_template import is_template

if TYPE_CHECKING:
    from docbridge.mcp.capabilities.server import ServerCapabilities
    from docbridge.mcp.protocol.client import MCPClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tool:
    """A callable capability."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.annotations.get("title") or self.name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tool":
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or {"type": "object", "properties": {}},
            annotations=data.get("annotations") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.annotations:
            result["annotations"] = self.annotations
        return result


@dataclass(frozen=True)
class Resource:
    """A concrete, readable resource."""

    uri: str
    name: str = ""
    description: str = ""
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        return cls(
            uri=data["uri"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            mime_type=data.get("mimeType"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
        }
        if self.mime_type:
            result["mimeType"] = self.mime_type
        return result


@dataclass(frozen=True)
class ResourceTemplate:
    """A resource URI with ``{param}`` placeholders."""

    uri_template: str
    name: str = ""
    description: str = ""
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceTemplate":
        return cls(
            uri_template=data["uriTemplate"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            mime_type=data.get("mimeType"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "uriTemplate": self.uri_template,
            "name": self.name,
            "description": self.description,
        }
        if self.mime_type:
            result["mimeType"] = self.mime_type
        return result


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str = ""
    required: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PromptArgument":
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            required=bool(data.get("required", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }


@dataclass(frozen=True)
class Prompt:
    """A parametrized prompt; arguments keep the server's order."""

    name: str
    description: str = ""
    arguments: tuple[PromptArgument, ...] = ()

    @property
    def required_arguments(self) -> list[str]:
        return [arg.name for arg in self.arguments if arg.required]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Prompt":
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            arguments=tuple(
                PromptArgument.from_dict(arg) for arg in data.get("arguments") or []
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [arg.to_dict() for arg in self.arguments],
        }


@dataclass(frozen=True)
class CapabilitySnapshot:
    """The four capability collections from one discovery pass."""

    tools: tuple[Tool, ...] = ()
    resources: tuple[Resource, ...] = ()
    resource_templates: tuple[ResourceTemplate, ...] = ()
    prompts: tuple[Prompt, ...] = ()

    def __str__(self) -> str:
        return (
            f"CapabilitySnapshot(tools={len(self.tools)}, "
            f"resources={len(self.resources)}, "
            f"templates={len(self.resource_templates)}, "
            f"prompts={len(self.prompts)})"
        )


EMPTY_SNAPSHOT = CapabilitySnapshot()


class CapabilityRegistry:
    """
    Caches what a connected server exposes.

    discover() lists tools, resources, resource templates and prompts and
    swaps them in as one snapshot. A listing the server did not declare a
    capability for is skipped and comes back empty. If any listing fails,
    the previous snapshot stays in place and the error propagates.
    """

    def __init__(self, max_pages: int = 100):
        self.max_pages = max_pages
        self._snapshot: CapabilitySnapshot = EMPTY_SNAPSHOT
        self._lock = asyncio.Lock()
        self._discovered = False

    @property
    def snapshot(self) -> CapabilitySnapshot:
        return self._snapshot

    @property
    def is_discovered(self) -> bool:
        return self._discovered

    @property
    def tools(self) -> tuple[Tool, ...]:
        return self._snapshot.tools

    @property
    def resources(self) -> tuple[Resource, ...]:
        return self._snapshot.resources

    @property
    def resource_templates(self) -> tuple[ResourceTemplate, ...]:
        return self._snapshot.resource_templates

    @property
    def prompts(self) -> tuple[Prompt, ...]:
        return self._snapshot.prompts

    async def discover(
        self,
        client: "MCPClient",
        capabilities: "ServerCapabilities | None" = None,
    ) -> CapabilitySnapshot:
        """
        Run a full discovery pass and replace the snapshot.

        Args:
            client: A connected, initialized MCP client.
            capabilities: Server capabilities from negotiation; None lists all.

        Raises:
            TransportError: If the channel is not established or fails.
            MCPError: If the server rejects a list request.
            PaginationError: If a page is malformed.
        """
        if not client.is_connected:
            raise SessionError("Cannot discover capabilities: client not connected")

        helper = PaginatedListHelper(client, max_pages=self.max_pages)
        listings = ALL_LISTINGS if capabilities is None else capabilities.listings()

        async with self._lock:
            tasks = [
                asyncio.create_task(helper.list_all(method, key), name=f"mcp-discover-{key}")
                for method, key in listings
            ]
            try:
                pages = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            found = {key: items for (_, key), items in zip(listings, pages)}

            snapshot = CapabilitySnapshot(
                tools=tuple(Tool.from_dict(t) for t in found.get("tools", ())),
                resources=tuple(Resource.from_dict(r) for r in found.get("resources", ())),
                resource_templates=tuple(
                    ResourceTemplate.from_dict(t) for t in found.get("resourceTemplates", ())
                ),
                prompts=tuple(Prompt.from_dict(p) for p in found.get("prompts", ())),
            )
            self._snapshot = snapshot
            self._discovered = True

        logger.info(f"Discovered {snapshot}")
        return snapshot

    def clear(self) -> None:
        """Forget the snapshot, e.g. when the session closes."""
        self._snapshot = EMPTY_SNAPSHOT
        self._discovered = False

    def get_tool(self, name: str) -> Tool | None:
        for tool in self._snapshot.tools:
            if tool.name == name:
                return tool
        return None

    def get_prompt(self, name: str) -> Prompt | None:
        for prompt in self._snapshot.prompts:
            if prompt.name == name:
                return prompt
        return None

    def find_resource(self, uri: str) -> Resource | ResourceTemplate | None:
        """Look up a resource by URI, or a template by its URI template."""
        if is_template(uri):
            for template in self._snapshot.resource_templates:
                if template.uri_template == uri:
                    return template
            return None
        for resource in self._snapshot.resources:
            if resource.uri == uri:
                return resource
        return None
