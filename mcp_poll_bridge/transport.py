import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import SessionMessage
from pydantic import BaseModel

from .registry import SessionRegistry

__all__ = [
    "MessageCallback",
    "MessageConverter",
    "PollingTransport",
    "Stream",
]

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], Awaitable[None]]

T = TypeVar("T")


class Stream(Generic[T]):
    """A pair of connected streams for bidirectional communication."""

    __slots__ = ("_reader", "_writer")

    def __init__(self, reader: MemoryObjectReceiveStream[T], writer: MemoryObjectSendStream[T]):
        self._reader = reader
        self._writer = writer

    @property
    def reader(self) -> MemoryObjectReceiveStream[T]:
        """Return the reader stream."""
        return self._reader

    @property
    def writer(self) -> MemoryObjectSendStream[T]:
        """Return the writer stream."""
        return self._writer

    @classmethod
    def create(cls, max_buffer_size: float = 0) -> "Stream[T]":
        """Create a new Stream instance.

        Parameters:
            max_buffer_size: Number of items held in the buffer until ``send()`` starts blocking

        Returns:
            A new Stream instance
        """
        writer, reader = anyio.create_memory_object_stream[T](max_buffer_size)
        return cls(reader=reader, writer=writer)

    async def close(self) -> None:
        """Close both streams."""
        await self._reader.aclose()
        await self._writer.aclose()


class MessageConverter:
    """Converts outbound messages into the text carried by a frame."""

    @staticmethod
    def to_string(message: Any) -> str:
        if isinstance(message, SessionMessage):
            message = message.message
        if isinstance(message, BaseModel):
            return message.model_dump_json(by_alias=True, exclude_none=True)
        return json.dumps(message)


class PollingTransport:
    """Duplex channel for the protocol handler backed by the session registry.

    Outbound messages are written into the buffers of every live session
    instead of a socket; inbound messages are pushed in by the request router
    through :meth:`deliver_incoming`.
    """

    __slots__ = ("_connected", "_on_message", "_registry")

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._connected = False
        self._on_message: MessageCallback | None = None

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def start(self) -> None:
        if self._connected:
            logger.debug("Polling transport already started")
            return
        self._connected = True
        logger.info("Polling transport started")

    async def stop(self) -> None:
        self._connected = False
        logger.info("Polling transport stopped")

    async def send(self, message: Any) -> None:
        """Broadcast a message to all live sessions.

        Delivery is best-effort: while the transport is stopped the message is dropped.
        """
        if not self._connected:
            logger.warning("Transport not connected, message not sent")
            return

        delivered = self._registry.broadcast(lambda: MessageConverter.to_string(message))
        logger.debug("Queued message for %d connection(s)", delivered)

    async def receive(self) -> Any:
        raise NotImplementedError("Polling transport receives messages through deliver_incoming()")

    def on_message(self, callback: MessageCallback | None) -> None:
        """Register the callback invoked for every inbound message."""
        self._on_message = callback

    async def deliver_incoming(self, message: Any) -> None:
        if self._on_message is None:
            logger.debug("No message handler registered, dropping inbound message")
            return
        await self._on_message(message)
