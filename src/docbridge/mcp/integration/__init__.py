"""
Bridge integration.

Connects an MCP server to a chat-completion model: capability registry,
schema translation, the tool-calling loop and the session that owns them.
"""

from docbridge.mcp.integration.llm_adapter import (
    LLMInterface,
    DedalusLLMAdapter,
    MockLLMAdapter,
)
from docbridge.mcp.integration.errors import ToolDispatchError, MissingResourceError
from docbridge.mcp.integration.registry import (
    Tool,
    Resource,
    ResourceTemplate,
    Prompt,
    PromptArgument,
    CapabilitySnapshot,
    CapabilityRegistry,
)
from docbridge.mcp.integration.schema import (
    FunctionToolCall,
    CustomToolCall,
    BareToolCall,
    ToolCallRequest,
    to_function_schema,
    parse_arguments,
    resolve_tool_call,
    extract_tool_text,
)
from docbridge.mcp.integration.orchestrator import (
    LoopState,
    Conversation,
    OrchestrationResult,
    ToolCallResult,
    ToolOrchestrator,
)
from docbridge.mcp.integration.bridge import BridgeSession, SessionOptions, PromptRun

__all__ = [
    "LLMInterface",
    "DedalusLLMAdapter",
    "MockLLMAdapter",
    "ToolDispatchError",
    "MissingResourceError",
    "Tool",
    "Resource",
    "ResourceTemplate",
    "Prompt",
    "PromptArgument",
    "CapabilitySnapshot",
    "CapabilityRegistry",
    "FunctionToolCall",
    "CustomToolCall",
    "BareToolCall",
    "ToolCallRequest",
    "to_function_schema",
    "parse_arguments",
    "resolve_tool_call",
    "extract_tool_text",
    "LoopState",
    "Conversation",
    "OrchestrationResult",
    "ToolCallResult",
    "ToolOrchestrator",
    "BridgeSession",
    "SessionOptions",
    "PromptRun",
]
