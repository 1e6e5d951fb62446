"""Client capability definitions for MCP negotiation."""

from dataclasses import dataclass
from typing import Any


@dataclass
class SamplingCapability:
    """
    Client services server-initiated LLM sampling.

    When declared, the server may send sampling/createMessage requests
    and expect a completion back.
    """

    pass


@dataclass
class ClientCapabilities:
    """Capabilities this client declares in the initialize request."""

    sampling: SamplingCapability | None = None
    """Server-initiated LLM sampling support."""

    experimental: dict[str, Any] | None = None
    """Experimental capabilities (vendor-specific)."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format for initialize request."""
        caps: dict[str, Any] = {}
        if self.sampling is not None:
            caps["sampling"] = {}
        if self.experimental is not None:
            caps["experimental"] = self.experimental
        return caps

    def supports_sampling(self) -> bool:
        """Check if sampling is supported."""
        return self.sampling is not None


DEFAULT_CLIENT_CAPABILITIES = ClientCapabilities(sampling=SamplingCapability())
