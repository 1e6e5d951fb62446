"""docbridge: bridges MCP servers and function-calling chat completion APIs."""

__version__ = "0.3.0"
