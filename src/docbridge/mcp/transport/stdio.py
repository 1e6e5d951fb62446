"""Stdio subprocess transport implementation for MCP."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import AsyncIterator

from docbridge.lib import oj
from docbridge.mcp.transport.base import (
    Transport,
    ConnectionError,
    SessionError,
    FramingError,
)
from docbridge.mcp.transport.types import (
    StdioServerParameters,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)


class StdioTransport(Transport):
    """
    JSON-RPC over the stdin/stdout pipes of a child process.

    The server runs as a subprocess. Each message is a single line of
    JSON terminated by a newline, in both directions. Reading and writing
    are independent: the protocol client may write any number of frames
    while a read is outstanding, which is what lets a server issue a
    request back to us before answering ours.
    """

    def __init__(self, params: StdioServerParameters):
        super().__init__()
        self.params = params
        self._process: asyncio.subprocess.Process | None = None
        self._write_lock = asyncio.Lock()
        self._stderr_task: asyncio.Task | None = None
        self._closing: bool = False

    @property
    def pid(self) -> int | None:
        """PID of the server process, if running."""
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        """Exit code of the server process once it has exited."""
        return self._process.returncode if self._process else None

    async def connect(self) -> None:
        """Spawn the server process."""
        if self.is_connected():
            return

        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTING,
                timestamp=time.time(),
                data={"command": self.params.command_line},
            )
        )

        env = None
        if self.params.env:
            env = {**os.environ, **self.params.env}

        stderr = {
            "ignore": asyncio.subprocess.DEVNULL,
            "inherit": None,
            "log": asyncio.subprocess.PIPE,
        }[self.params.stderr]

        logger.info(f"Starting MCP server: {' '.join(self.params.command_line)}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.params.command,
                *self.params.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=stderr,
                env=env,
                cwd=self.params.cwd,
                limit=self.params.max_line_bytes,
            )
        except OSError as e:
            raise ConnectionError(
                f"Failed to start server process {self.params.command!r}: {e}",
                cause=e,
            )

        self._closing = False
        if self.params.stderr == "log":
            self._stderr_task = asyncio.create_task(
                self._drain_stderr(),
                name="mcp-stdio-stderr",
            )

        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTED,
                timestamp=time.time(),
                data={"pid": self._process.pid},
            )
        )

    async def disconnect(self) -> None:
        """Close stdin and wait for the process, escalating to terminate/kill."""
        process = self._process
        if process is None:
            return

        self._closing = True
        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTING,
                timestamp=time.time(),
            )
        )

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        if process.returncode is None:
            try:
                await asyncio.wait_for(
                    process.wait(), timeout=self.params.shutdown_timeout
                )
            except asyncio.TimeoutError:
                logger.warning("MCP server did not exit after stdin closed, terminating")
                await self._terminate(process)

        if self._stderr_task and not self._stderr_task.done():
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
        self._stderr_task = None
        self._process = None

        logger.info(f"MCP server stopped (exit code {process.returncode})")
        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTED,
                timestamp=time.time(),
                data={"returncode": process.returncode},
            )
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.params.shutdown_timeout)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.warning("MCP server ignored SIGTERM, killing")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def send(self, message: dict) -> None:
        """Write one frame to the server's stdin."""
        if not self.is_connected():
            raise SessionError("Transport not connected")

        assert self._process is not None and self._process.stdin is not None
        frame = oj.dumps_bytes(message) + b"\n"

        async with self._write_lock:
            try:
                self._process.stdin.write(frame)
                await self._process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise SessionError(f"Server process closed its input: {e}", cause=e)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

    async def receive(self) -> AsyncIterator[dict]:
        """
        Yield frames read from the server's stdout.

        Raises:
            SessionError: If the server process exits while we are reading.
            FramingError: If a line is not a JSON object or is too long.
        """
        if self._process is None or self._process.stdout is None:
            raise SessionError("Transport not connected")

        stdout = self._process.stdout

        while not self._closing:
            try:
                line = await stdout.readline()
            except ValueError as e:
                # StreamReader raises ValueError when a line exceeds the limit
                raise FramingError(f"Frame exceeds {self.params.max_line_bytes} bytes", cause=e)

            if not line:
                if self._closing:
                    return
                returncode = await self._process.wait()
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.PROCESS_EXITED,
                        timestamp=time.time(),
                        data={"returncode": returncode},
                    )
                )
                raise SessionError(f"Server process exited with code {returncode}")

            line = line.strip()
            if not line:
                continue

            try:
                message = oj.loads(line)
            except oj.JSONDecodeError as e:
                error = FramingError(f"Malformed frame from server: {line[:200]!r}", cause=e)
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.ERROR,
                        timestamp=time.time(),
                        error=error,
                    )
                )
                raise error

            if not isinstance(message, dict):
                raise FramingError(f"Frame is not a JSON object: {line[:200]!r}")

            self._emit_event(
                TransportEvent(
                    type=TransportEventType.MESSAGE_RECEIVED,
                    timestamp=time.time(),
                    data={"id": message.get("id"), "method": message.get("method")},
                )
            )
            yield message

    def is_connected(self) -> bool:
        """Check if the server process is running and we are not closing."""
        return (
            self._process is not None
            and self._process.returncode is None
            and not self._closing
        )

    async def _drain_stderr(self) -> None:
        """Forward server stderr lines to our logger."""
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        try:
            while True:
                line = await stderr.readline()
                if not line:
                    break
                logger.debug(f"[server stderr] {line.decode('utf-8', 'replace').rstrip()}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Stopped reading server stderr: {e}")
