"""Forwarding of MCP server log notifications into Python logging."""

from __future__ import annotations

import logging as python_logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from docbridge.lib import oj

if TYPE_CHECKING:
    from docbridge.mcp.protocol.client import MCPClient

logger = python_logging.getLogger(__name__)


class LogLevel(Enum):
    """RFC 5424 severities used by notifications/message, least severe first."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    ALERT = "alert"
    EMERGENCY = "emergency"

    @classmethod
    def from_string(cls, value: str) -> "LogLevel":
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Invalid log level: {value}")

    @property
    def python_level(self) -> int:
        return _PYTHON_LEVELS[self]


# Python has no NOTICE, ALERT or EMERGENCY
_PYTHON_LEVELS = {
    LogLevel.DEBUG: python_logging.DEBUG,
    LogLevel.INFO: python_logging.INFO,
    LogLevel.NOTICE: python_logging.INFO,
    LogLevel.WARNING: python_logging.WARNING,
    LogLevel.ERROR: python_logging.ERROR,
    LogLevel.CRITICAL: python_logging.CRITICAL,
    LogLevel.ALERT: python_logging.CRITICAL,
    LogLevel.EMERGENCY: python_logging.CRITICAL,
}


@dataclass
class LogMessage:
    """A notifications/message record sent by the server."""

    level: LogLevel
    logger: str | None = None
    data: Any = None

    @classmethod
    def from_dict(cls, params: dict[str, Any]) -> "LogMessage":
        return cls(
            level=LogLevel.from_string(params["level"]),
            logger=params.get("logger"),
            data=params.get("data"),
        )

    @property
    def text(self) -> str:
        if self.data is None:
            return "(no message)"
        if isinstance(self.data, str):
            return self.data
        return oj.dumps(self.data)


class LoggingHandler:
    """
    Handles notifications/message from the server.

    Each record is re-emitted on a Python logger named
    "<prefix>.<server logger>" at the matching level, so server output
    shows up with the bridge's own logs and can be filtered by name.
    """

    def __init__(self, logger_prefix: str = "mcp.server") -> None:
        self.logger_prefix = logger_prefix
        self.message_count = 0

    async def handle_log_message(self, params: dict[str, Any] | None) -> None:
        if not params:
            logger.warning("Received log notification without params")
            return

        try:
            message = LogMessage.from_dict(params)
        except (KeyError, ValueError) as e:
            logger.warning(f"Invalid log notification: {e}")
            return

        self.message_count += 1
        name = self.logger_prefix
        if message.logger:
            name = f"{name}.{message.logger}"
        python_logging.getLogger(name).log(message.level.python_level, message.text)

    def register_handlers(self, client: "MCPClient") -> None:
        client.on_notification("notifications/message", self.handle_log_message)
