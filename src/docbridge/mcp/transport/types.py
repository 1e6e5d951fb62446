"""Transport layer types and configuration."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Literal


class TransportEventType(Enum):
    """Types of transport events for observability."""

    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()
    DISCONNECTED = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    ERROR = auto()
    PROCESS_EXITED = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


StderrPolicy = Literal["ignore", "inherit", "log"]


@dataclass
class StdioServerParameters:
    """How to launch an MCP server as a subprocess."""

    command: str
    """Executable to run (e.g. "npx", "python")."""

    args: list[str] = field(default_factory=list)
    """Arguments passed to the executable."""

    env: dict[str, str] | None = None
    """Extra environment variables, merged over the parent environment."""

    cwd: str | None = None
    """Working directory for the server process."""

    stderr: StderrPolicy = "ignore"
    """What to do with the server's stderr stream."""

    shutdown_timeout: float = 5.0
    """Seconds to wait for a graceful exit before terminating."""

    max_line_bytes: int = 16 * 1024 * 1024
    """Largest single frame accepted from the server."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.command:
            raise ValueError("command is required")
        if self.stderr not in ("ignore", "inherit", "log"):
            raise ValueError(f"Invalid stderr policy: {self.stderr}")
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be positive")
        if self.max_line_bytes < 1024:
            raise ValueError("max_line_bytes must be at least 1024")

    @property
    def command_line(self) -> list[str]:
        """Full argv for the subprocess."""
        return [self.command, *self.args]
