import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "SSE_HEADERS",
    "Event",
    "EventType",
    "frame_connected",
    "frame_messages",
    "frame_ping",
]

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class EventType(str, Enum):  # for Py10 compatibility
    """Event types for SSE."""

    CONNECTED = "connected"
    MESSAGE = "message"
    PING = "ping"

    def __str__(self) -> str:  # for Py11+ compatibility
        return self.value


@dataclass(frozen=True, slots=True)
class Event:
    """A single server-sent event frame."""

    event_id: int
    event_type: EventType
    data: str

    def encode(self) -> str:
        """Render the frame, terminated by a blank line."""
        return f"id: {self.event_id}\nevent: {self.event_type}\ndata: {self.data}\n\n"


def frame_connected(session_id: str) -> str:
    """Frame the event announcing a freshly opened session.

    The event carries id 0, which precedes the first message id of the session.
    """
    data = json.dumps({"connectionId": session_id}, separators=(",", ":"))
    return Event(event_id=0, event_type=EventType.CONNECTED, data=data).encode()


def frame_messages(session_id: str, payloads: Sequence[str], start_event_id: int) -> str:
    """Frame drained payloads with ids continuing after ``start_event_id``."""
    logger.debug("Framing %d message(s) for connection %s", len(payloads), session_id)
    return "".join(
        Event(event_id=start_event_id + index + 1, event_type=EventType.MESSAGE, data=payload).encode()
        for index, payload in enumerate(payloads)
    )


def frame_ping(event_id: int) -> str:
    """Frame a heartbeat; ``event_id`` is taken from the session cursor like any other event."""
    return Event(event_id=event_id, event_type=EventType.PING, data="{}").encode()
