"""Abstract base transport and error types."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

from docbridge.mcp.transport.types import TransportEvent


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConnectionError(TransportError):
    """Failed to start or reach the server."""

    pass


class TimeoutError(TransportError):
    """Request timed out waiting for its correlated response."""

    pass


class SessionError(TransportError):
    """Channel is not established, closing, or the server process exited."""

    pass


class FramingError(TransportError):
    """A frame received from the server could not be decoded."""

    pass


class Transport(ABC):
    """
    Abstract base class for MCP transports.

    Transports move discrete JSON-RPC messages over some duplex channel.
    They know nothing about request/response correlation; that lives in
    the protocol client.
    """

    def __init__(self) -> None:
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event: TransportEvent) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                # Observers must not break the channel
                pass

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the channel.

        Raises:
            ConnectionError: If the channel cannot be established.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close the channel and release all resources.

        This method should be safe to call multiple times.
        """

    @abstractmethod
    async def send(self, message: dict) -> None:
        """
        Send one JSON-RPC message.

        Args:
            message: JSON-RPC message (request, notification, or response).

        Raises:
            SessionError: If the channel is not established.
            TransportError: If the write fails.
        """

    @abstractmethod
    def receive(self) -> AsyncIterator[dict]:
        """
        Async iterator yielding JSON-RPC messages from the server.

        Ends normally only when the transport is being closed. Loss of the
        channel or an undecodable frame raises TransportError.
        """

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the channel is currently usable."""

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
