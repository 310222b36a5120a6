import asyncio
import json
import logging
import math
from collections.abc import Callable, Sequence
from contextlib import suppress
from typing import Any

import anyio
from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel import Server
from mcp.shared.message import SessionMessage
from mcp.types import AnyFunction, ContentBlock, JSONRPCMessage, TextContent, Tool
from pydantic import ValidationError

from .config import LogLevel
from .errors import HandlerFailure, MessageDecodeError
from .transport import PollingTransport, Stream
from .types import ToolCallMessage, ToolResultMessage

__all__ = ["PollingMCP"]

logger = logging.getLogger(__name__)


def _content_blocks(result: Any) -> list[ContentBlock]:
    """Normalize what ``FastMCP.call_tool`` returns into a list of content blocks."""
    if isinstance(result, tuple):
        # (unstructured, structured) when the tool declares an output schema
        result = result[0]
    if isinstance(result, dict):
        return [TextContent(type="text", text=json.dumps(result))]
    return list(result)


def _log_serve_exit(task: "asyncio.Task[None]") -> None:
    if task.cancelled():
        logger.debug("MCP server task cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("MCP server task failed", exc_info=exc)
    else:
        logger.warning("MCP server task exited")


class PollingMCP:
    """MCP server that talks to its clients through a :class:`PollingTransport`.

    JSON-RPC messages are fed to the low-level MCP server, which runs as a
    background task for the lifetime of the process. Plain ``tool_call``
    messages are executed directly and answered with a ``tool_result``.
    """

    def __init__(
        self,
        name: str | None = None,
        instructions: str | None = None,
        version: str | None = None,
        log_level: LogLevel = "INFO",
        warn_on_duplicate_tools: bool = True,
    ) -> None:
        self._fastmcp = FastMCP(
            name=name,
            instructions=instructions,
            log_level=log_level,
            warn_on_duplicate_tools=warn_on_duplicate_tools,
        )
        if version is not None:
            self.server.version = version
        self._transport: PollingTransport | None = None
        self._inbound: Stream[SessionMessage | Exception] | None = None
        self._outbound: Stream[SessionMessage] | None = None
        self._serve_task: asyncio.Task[None] | None = None

    @property
    def server(self) -> Server[Any]:
        return self._fastmcp._mcp_server

    @property
    def transport(self) -> PollingTransport:
        if self._transport is None:
            raise RuntimeError("MCP server is not connected to a transport. Call `connect()` first.")
        return self._transport

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    @property
    def is_serving(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    def tool(self, name: str | None = None, description: str | None = None) -> Callable[[AnyFunction], AnyFunction]:
        return self._fastmcp.tool(name, description=description)

    async def list_tools(self) -> list[Tool]:
        """List all available tools."""
        return await self._fastmcp.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Sequence[ContentBlock]:
        """Call a tool by name with arguments."""
        return _content_blocks(await self._fastmcp.call_tool(name, arguments))

    async def connect(self, transport: PollingTransport) -> None:
        """Attach to the transport and start serving; later calls are no-ops."""
        if self._transport is not None:
            return

        self._transport = transport
        self._inbound = Stream[SessionMessage | Exception].create(max_buffer_size=math.inf)
        self._outbound = Stream[SessionMessage].create()
        transport.on_message(self.handle_message)
        await transport.start()

        self._serve_task = asyncio.create_task(self._serve())
        self._serve_task.add_done_callback(_log_serve_exit)
        logger.info("MCP Server initialized")

    async def close(self) -> None:
        """Stop the server task and detach from the transport.

        A server task that already failed was logged when it exited, so its
        error is not raised again here.
        """
        if self._serve_task is not None:
            task, self._serve_task = self._serve_task, None
            if not task.done():
                task.cancel()
            with suppress(asyncio.CancelledError, Exception):
                await task
        if self._transport is not None:
            self._transport.on_message(None)
            await self._transport.stop()
            self._transport = None
        for stream in (self._inbound, self._outbound):
            if stream is not None:
                await stream.close()
        self._inbound = None
        self._outbound = None

    async def _serve(self) -> None:
        """Run the low-level server and forward everything it writes to the transport."""
        if self._inbound is None or self._outbound is None:
            raise RuntimeError("Streams are not initialized")
        inbound, outbound = self._inbound, self._outbound

        async def _pump_outbound() -> None:
            async with outbound.reader:
                async for session_message in outbound.reader:
                    logger.debug("Sending message: %s", session_message.message)
                    await self.transport.send(session_message)

        async with anyio.create_task_group() as tg:
            tg.start_soon(_pump_outbound)
            await self.server.run(
                read_stream=inbound.reader,
                write_stream=outbound.writer,
                initialization_options=self.server.create_initialization_options(),
                raise_exceptions=False,
            )
            tg.cancel_scope.cancel()

    async def handle_message(self, message: Any) -> None:
        """Process one inbound message delivered by the transport."""
        try:
            call = ToolCallMessage.model_validate(message)
        except ValidationError:
            call = None

        if call is not None:
            logger.debug("Calling tool %s with %s", call.name, call.parameters)
            content = await self.call_tool(call.name, call.parameters)
            await self.transport.send(ToolResultMessage(name=call.name, content=list(content)))
            return

        try:
            rpc_message = JSONRPCMessage.model_validate(message)
        except ValidationError as err:
            raise MessageDecodeError(f"Could not parse message: {err.error_count()} validation error(s)") from err

        if self._inbound is None or not self.is_serving:
            raise HandlerFailure("MCP server is not running")
        logger.debug("Forwarding JSON-RPC message: %s", rpc_message)
        await self._inbound.writer.send(SessionMessage(rpc_message))
