"""
Client-side MCP features.

Handlers for requests the server sends to the client.
"""

from docbridge.mcp.features.sampling import (
    SamplingHandler,
    SamplingConfig,
    SamplingRequest,
    SamplingResult,
    SamplingFailure,
    sampling_prompt,
    SAMPLING_METHOD,
    DEFAULT_MAX_TOKENS,
)

__all__ = [
    "SamplingHandler",
    "SamplingConfig",
    "SamplingRequest",
    "SamplingResult",
    "SamplingFailure",
    "sampling_prompt",
    "SAMPLING_METHOD",
    "DEFAULT_MAX_TOKENS",
]
