"""
Live session to a single MCP tool server.

The stdio transport and the protocol client are entered and exited by one
owner task per session. The MCP SDK builds both on anyio task groups, whose
cancel scopes must be closed by the task that opened them; requests
themselves are sent from whichever task calls ``list_tools``/``call_tool``.

Server output reaches the client through a relay task; when the child exits
and its output ends, the session is marked dead and the owner task unwinds.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Mapping, Optional

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from orbit.models import ServerConfig, ToolInfo, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_HANDSHAKE_TIMEOUT = 30.0
DEFAULT_CLOSE_TIMEOUT = 10.0


def build_env(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Build environment variables for the child process."""
    # Start with current environment
    env = dict(os.environ)

    for key, value in (extra or {}).items():
        # Substitute ${VAR} references
        if value.startswith("${") and value.endswith("}"):
            env[key] = os.environ.get(value[2:-1], "")
        else:
            env[key] = value

    return env


class ServerSession:
    """
    One live stdio session: child process plus protocol client.

    Created closed; ``open()`` spawns the process and performs the protocol
    handshake, ``close()`` releases both.
    """

    def __init__(
        self,
        config: ServerConfig,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ):
        self.config = config
        self.server_id = config.id
        self.transport_kind = config.kind
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout
        self.client: Optional[ClientSession] = None
        self._connected = False
        self._closing = False
        self._runner: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def connected(self) -> bool:
        """True from a completed handshake until close or until the server exits."""
        return (
            self._connected
            and self.client is not None
            and self._runner is not None
            and not self._runner.done()
        )

    async def open(self) -> None:
        """
        Spawn the server process and run the protocol handshake.

        Raises:
            TimeoutError: If the handshake does not finish in time
            Exception: Whatever the spawn or the handshake raised
        """
        if self._runner is not None:
            raise RuntimeError(f"Session {self.server_id} already opened")

        loop = asyncio.get_running_loop()
        self._ready = loop.create_future()
        self._stop = asyncio.Event()
        self._runner = asyncio.create_task(
            self._run(), name=f"mcp-session-{self.server_id}"
        )
        self._runner.add_done_callback(self._on_runner_done)

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout=self.handshake_timeout)
        except asyncio.TimeoutError as e:
            await self._abort()
            raise TimeoutError(
                f"Handshake with {self.server_id} timed out after {self.handshake_timeout}s"
            ) from e
        except BaseException:
            await self._abort()
            raise

        logger.info(f"Session opened for {self.server_id}")

    async def _run(self) -> None:
        params = StdioServerParameters(
            command=self.config.command,
            args=list(self.config.args),
            env=build_env(self.config.env),
        )
        logger.info(
            f"Connecting to server {self.server_id}: {params.command} {' '.join(params.args)}"
        )

        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await stack.enter_async_context(
                    stdio_client(params)
                )

                # Server output goes through a relay so that end-of-stream
                # (the child exited) also ends this task.
                relay_send, relay_receive = anyio.create_memory_object_stream(0)
                relays = await stack.enter_async_context(anyio.create_task_group())
                stack.callback(relays.cancel_scope.cancel)
                relays.start_soon(self._relay, read_stream, relay_send)

                client = await stack.enter_async_context(
                    ClientSession(relay_receive, write_stream)
                )
                await client.initialize()

                self.client = client
                self._connected = not self._stop.is_set()
                self._ready.set_result(None)

                await self._stop.wait()
                if not self._closing:
                    logger.warning(f"Server {self.server_id} exited, session closed")
                logger.debug(f"Closing transport of {self.server_id}")
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
                return
            raise
        finally:
            self._connected = False
            self.client = None

    async def _relay(
        self,
        source: MemoryObjectReceiveStream,
        sink: MemoryObjectSendStream,
    ) -> None:
        async with sink:
            try:
                async for message in source:
                    await sink.send(message)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
                logger.debug(f"Relay of {self.server_id} stopped: {e!r}")
            finally:
                self._mark_dead()

    def _mark_dead(self) -> None:
        self._connected = False
        self._stop.set()

    def _on_runner_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not self._closing:
            logger.warning(f"Transport of {self.server_id} terminated unexpectedly: {exc}")

    async def _abort(self) -> None:
        """Tear down a session whose handshake did not complete."""
        runner, self._runner = self._runner, None
        if runner is None:
            return
        self._closing = True
        self._stop.set()
        if not runner.done():
            runner.cancel()
        try:
            await runner
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                raise
        except Exception as e:
            logger.debug(f"Error while aborting {self.server_id}: {e}")

    async def list_tools(self) -> List[ToolInfo]:
        client = self._require_client()
        try:
            response = await client.list_tools()
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            self._mark_dead()
            raise
        return [
            ToolInfo(
                name=tool.name,
                description=tool.description,
                input_schema=tool.inputSchema,
            )
            for tool in response.tools
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        client = self._require_client()
        logger.debug(f"Calling {self.server_id}:{name} with {arguments}")
        try:
            result = await client.call_tool(name, arguments or {})
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            self._mark_dead()
            raise
        return ToolResult(
            content=[
                item.model_dump(mode="json", by_alias=True, exclude_none=True)
                for item in result.content
            ],
            is_error=bool(getattr(result, "isError", False)),
        )

    def _require_client(self) -> ClientSession:
        client = self.client
        if client is None or not self.connected:
            raise RuntimeError(f"Session {self.server_id} is not connected")
        return client

    async def close(self) -> None:
        """
        Close the protocol client, then the transport (terminating the child).

        Raises:
            TimeoutError: If the owner task does not finish within close_timeout
            Exception: Any error raised while unwinding the transport
        """
        runner, self._runner = self._runner, None
        if runner is None:
            return

        logger.info(f"Disconnecting from server {self.server_id}")
        self._closing = True
        self._mark_dead()

        if runner.done():
            if not runner.cancelled() and runner.exception() is not None:
                raise runner.exception()
            return

        try:
            await asyncio.wait_for(runner, timeout=self.close_timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Transport of {self.server_id} did not close within {self.close_timeout}s"
            ) from e
