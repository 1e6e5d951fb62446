"""MCP protocol client implementation."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Awaitable

from docbridge.mcp.transport.base import (
    Transport,
    TransportError,
    SessionError,
    TimeoutError,
)
from docbridge.mcp.protocol.messages import (
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
    FrameKind,
    classify,
)
from docbridge.mcp.protocol.errors import (
    MCPError,
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
)
from docbridge.mcp.protocol.state import (
    ProtocolState,
    ProtocolStateMachine,
)

logger = logging.getLogger(__name__)

# Type aliases for handlers
RequestHandler = Callable[[dict[str, Any] | None], Awaitable[Any]]
NotificationHandler = Callable[[dict[str, Any] | None], Awaitable[None]]


class MCPClient:
    """
    Core MCP protocol client.

    Handles JSON-RPC 2.0 message exchange over a Transport: request ids and
    the correlation table, server-initiated requests and notifications, and
    the session lifecycle.

    A single receive task reads every inbound frame regardless of which
    outbound request is in flight. Server requests are each handled in
    their own task, so a handler may run to completion while our own
    requests are still waiting on the server.
    """

    def __init__(
        self,
        transport: Transport,
        request_timeout: float = 60.0,
        max_pending_requests: int = 100,
    ):
        """
        Initialize MCP client.

        Args:
            transport: Transport layer for communication.
            request_timeout: Default timeout for requests in seconds.
            max_pending_requests: Maximum number of concurrent pending requests.
        """
        self.transport = transport
        self.request_timeout = request_timeout
        self.max_pending_requests = max_pending_requests

        self._state = ProtocolStateMachine()
        self._ids = itertools.count(1)
        self._pending_requests: dict[str, asyncio.Future[Any]] = {}
        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}
        self._receive_task: asyncio.Task | None = None
        self._handler_tasks: set[asyncio.Task] = set()
        self._closing = False
        self._failure: TransportError | None = None

    @property
    def state(self) -> ProtocolState:
        """Current protocol state."""
        return self._state.state

    @property
    def is_connected(self) -> bool:
        """Check if client is in a connected state."""
        return self._state.is_connected

    @property
    def is_ready(self) -> bool:
        """Check if client is ready for requests."""
        return self._state.is_ready

    @property
    def pending_count(self) -> int:
        """Number of outbound requests awaiting a response."""
        return len(self._pending_requests)

    def on_state_change(
        self,
        callback: Callable[[ProtocolState, ProtocolState], None],
    ) -> None:
        """Register callback for state changes."""
        self._state.on_transition(callback)

    async def connect(self) -> None:
        """
        Connect transport and start message receiver.

        After connect(), the client is in INITIALIZING state. Register
        request handlers before calling this: the server may issue requests
        as soon as the channel is up.

        Raises:
            TransportError: If the transport cannot be established.
        """
        if self._state.state == ProtocolState.CLOSED:
            self._state.transition(ProtocolState.DISCONNECTED)
        if self._state.state != ProtocolState.DISCONNECTED:
            raise SessionError("Client already connected")

        self._closing = False
        self._failure = None
        self._state.transition(ProtocolState.CONNECTING)

        try:
            await self.transport.connect()
        except TransportError:
            self._state.transition(ProtocolState.DISCONNECTED)
            raise
        except Exception as e:
            self._state.transition(ProtocolState.DISCONNECTED)
            raise TransportError(f"Connection failed: {e}", cause=e)

        self._receive_task = asyncio.create_task(
            self._receive_loop(),
            name="mcp-receive-loop",
        )
        self._state.transition(ProtocolState.INITIALIZING)

    def _not_connected(self) -> SessionError:
        if self._failure is not None:
            return SessionError(f"Client not connected: {self._failure}", cause=self._failure)
        return SessionError("Client not connected")

    def _next_id(self) -> int:
        # Never awaits, so concurrent callers always get distinct ids
        return next(self._ids)

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request and wait for the correlated response.

        Args:
            method: The RPC method name.
            params: Optional method parameters.
            timeout: Request timeout (defaults to self.request_timeout).

        Returns:
            The result from the response.

        Raises:
            MCPError: If the server answers with an error object.
            TimeoutError: If no response arrives in time.
            TransportError: If the channel is down or fails while waiting.
        """
        if not self._state.is_connected:
            raise self._not_connected()

        if len(self._pending_requests) >= self.max_pending_requests:
            raise TransportError("Too many pending requests")

        request = JSONRPCRequest(method=method, id=self._next_id(), params=params)
        key = str(request.id)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending_requests[key] = future

        effective_timeout = timeout if timeout is not None else self.request_timeout
        logger.debug(f"-> {request}")

        try:
            await self.transport.send(request.to_dict())
            return await asyncio.wait_for(future, timeout=effective_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"Request {method} timed out after {effective_timeout}s"
            )
        finally:
            self._pending_requests.pop(key, None)

    async def notify(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        """Send a notification (fire-and-forget)."""
        if not self._state.is_connected:
            raise self._not_connected()

        notification = JSONRPCNotification(method=method, params=params)
        logger.debug(f"-> {notification}")
        await self.transport.send(notification.to_dict())

    def on_request(self, method: str, handler: RequestHandler) -> None:
        """
        Register handler for server-initiated requests.

        Args:
            method: The method name to handle.
            handler: Async function receiving params, returning result.
        """
        self._request_handlers[method] = handler

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        """
        Register handler for server-initiated notifications.

        Args:
            method: The method name to handle.
            handler: Async function receiving params.
        """
        self._notification_handlers[method] = handler

    def mark_ready(self) -> None:
        """Mark the client as ready after a successful handshake."""
        if self._state.state == ProtocolState.INITIALIZING:
            self._state.transition(ProtocolState.READY)

    async def close(self) -> None:
        """Close connection and cleanup resources."""
        if self._closing:
            return
        if self._receive_task is None and not self._state.is_connected:
            return

        self._closing = True

        if self._state.can_transition_to(ProtocolState.CLOSING):
            self._state.transition(ProtocolState.CLOSING)
        else:
            self._state.force_state(ProtocolState.CLOSING)

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
        self._receive_task = None

        for task in list(self._handler_tasks):
            task.cancel()
        if self._handler_tasks:
            await asyncio.gather(*self._handler_tasks, return_exceptions=True)
        self._handler_tasks.clear()

        self._fail_pending(SessionError("Client closing"))

        try:
            await self.transport.disconnect()
        finally:
            self._state.transition(ProtocolState.CLOSED)
            self._closing = False

    async def _receive_loop(self) -> None:
        """Background task processing incoming messages."""
        try:
            async for message in self.transport.receive():
                await self._handle_message(message)
            if not self._closing:
                self._on_channel_lost(SessionError("Channel closed by server"))
        except asyncio.CancelledError:
            pass
        except TransportError as e:
            if not self._closing:
                self._on_channel_lost(e)
        except Exception as e:
            if not self._closing:
                self._on_channel_lost(TransportError(f"Receive loop failed: {e}", cause=e))

    def _on_channel_lost(self, error: TransportError) -> None:
        logger.error(f"MCP channel lost: {error}")
        self._failure = error
        self._fail_pending(error)
        if self._state.can_transition_to(ProtocolState.DISCONNECTED):
            self._state.transition(ProtocolState.DISCONNECTED)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()

    async def _handle_message(self, message: dict) -> None:
        """Route incoming message to appropriate handler."""
        kind = classify(message)
        if kind is FrameKind.RESPONSE:
            self._handle_response(message)
        elif kind is FrameKind.REQUEST:
            task = asyncio.create_task(
                self._handle_server_request(message),
                name=f"mcp-request-{message.get('method')}",
            )
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)
        elif kind is FrameKind.NOTIFICATION:
            await self._handle_notification(message)
        else:
            logger.warning(f"Ignoring invalid frame: {message}")

    def _handle_response(self, message: dict) -> None:
        """Complete pending request future with response."""
        response = JSONRPCResponse.from_dict(message)
        if response.id is None:
            logger.warning("Received response without id")
            return

        future = self._pending_requests.get(str(response.id))
        if future is None:
            logger.warning(f"No pending request for id: {response.id}")
            return
        if future.done():
            return

        logger.debug(f"<- {response}")
        if response.error is not None:
            future.set_exception(MCPError.from_dict(response.error.to_dict()))
        else:
            future.set_result(response.result)

    async def _handle_server_request(self, message: dict) -> None:
        """Handle request from server, send response."""
        request = JSONRPCRequest.from_dict(message)
        handler = self._request_handlers.get(request.method)
        logger.debug(f"<- {request}")

        if handler is None:
            response = JSONRPCResponse.error_response(
                id=request.id,
                code=METHOD_NOT_FOUND,
                message=f"Method not found: {request.method}",
            )
        else:
            try:
                result = await handler(request.params)
                response = JSONRPCResponse.success(id=request.id, result=result)
            except MCPError as e:
                response = JSONRPCResponse.error_response(
                    id=request.id,
                    code=e.code,
                    message=e.message,
                    data=e.data,
                )
            except Exception as e:
                logger.exception(f"Handler error for {request.method}")
                response = JSONRPCResponse.error_response(
                    id=request.id,
                    code=INTERNAL_ERROR,
                    message=str(e),
                )

        try:
            await self.transport.send(response.to_dict())
        except TransportError as e:
            logger.warning(f"Could not answer {request}: {e}")

    async def _handle_notification(self, message: dict) -> None:
        """Handle notification from server."""
        notification = JSONRPCNotification.from_dict(message)
        handler = self._notification_handlers.get(notification.method)

        if handler is None:
            logger.debug(f"Unhandled notification: {notification.method}")
            return
        try:
            await handler(notification.params)
        except Exception:
            logger.exception(f"Notification handler error for {notification.method}")

    async def __aenter__(self) -> "MCPClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
