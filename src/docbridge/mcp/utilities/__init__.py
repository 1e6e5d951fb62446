"""
MCP protocol utilities.

- Ping: connection health checks
- Logging: forwarding server log notifications to Python logging
- Pagination: cursor-based list pagination
- URI templates: expansion of templated resource identifiers
"""

from docbridge.mcp.utilities.ping import PingHandler, ping_server
from docbridge.mcp.utilities.server_logging import LoggingHandler, LogLevel, LogMessage
from docbridge.mcp.utilities.pagination import (
    PaginatedListHelper,
    PaginatedResult,
    PaginationError,
)
from docbridge.mcp.utilities.uri_template import (
    MissingParameterError,
    expand_uri_template,
    is_template,
    template_parameters,
)

__all__ = [
    "LogLevel",
    "LogMessage",
    "PaginatedResult",
    "PingHandler",
    "ping_server",
    "LoggingHandler",
    "PaginatedListHelper",
    "PaginationError",
    "MissingParameterError",
    "expand_uri_template",
    "is_template",
    "template_parameters",
]
