import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from .errors import SessionNotFoundError

__all__ = ["DrainResult", "Session", "SessionRegistry", "time_based_id"]

logger = logging.getLogger(__name__)


def time_based_id() -> str:
    """Return the current wall-clock time in milliseconds as a string."""
    return str(int(time.time() * 1000))


@dataclass(slots=True)
class Session:
    """A logical connection kept alive across stateless invocations."""

    id: str
    pending_messages: list[str] = field(default_factory=list)
    last_event_id: int = 0
    last_seen: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_seen = time.monotonic()


class DrainResult(NamedTuple):
    """Messages taken from a session and the event id cursor they follow."""

    messages: list[str]
    start_event_id: int


class SessionRegistry:
    """In-memory set of live sessions and their pending message buffers.

    All mutations go through a single registry-wide lock, so the registry
    can be shared by handlers running on different threads.
    """

    __slots__ = ("_id_factory", "_idle_timeout", "_lock", "_sessions")

    def __init__(
        self,
        id_factory: Callable[[], str] = time_based_id,
        idle_timeout: float | None = None,
    ) -> None:
        self._id_factory = id_factory
        self._idle_timeout = idle_timeout
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def _allocate_id(self) -> str:
        base = self._id_factory()
        session_id = base
        suffix = 0
        # Time-based ids collide when sessions open within the same tick
        while session_id in self._sessions:
            suffix += 1
            session_id = f"{base}-{suffix}"
        if suffix:
            logger.debug("Session id %s already taken, using %s", base, session_id)
        return session_id

    def create_session(self) -> Session:
        with self._lock:
            session = Session(id=self._allocate_id())
            self._sessions[session.id] = session
            logger.info("New connection established: %s (total: %d)", session.id, len(self._sessions))
            return session

    def find_session(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def append_message(self, session_id: str, payload: str) -> None:
        """Append a serialized payload to the session's buffer."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id, len(self._sessions))
            session.pending_messages.append(payload)
            session.touch()

    def broadcast(self, serialize: Callable[[], str]) -> int:
        """Append ``serialize()`` to every live session, returning how many were reached.

        A serialization failure for one session is logged and does not stop
        delivery to the remaining sessions.
        """
        delivered = 0
        with self._lock:
            for session in self._sessions.values():
                try:
                    payload = serialize()
                except (TypeError, ValueError):
                    logger.exception("Error serializing message for connection %s", session.id)
                    continue
                session.pending_messages.append(payload)
                delivered += 1
        return delivered

    def drain_messages(self, session_id: str) -> DrainResult:
        """Empty the session's buffer and advance its event id cursor.

        An empty drain still advances the cursor by one, reserving the id of
        the ping frame sent in place of messages.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id, len(self._sessions))
            messages, session.pending_messages = session.pending_messages, []
            start_event_id = session.last_event_id
            session.last_event_id += len(messages) or 1
            session.touch()
            return DrainResult(messages=messages, start_event_id=start_event_id)

    def prune_idle(self) -> list[str]:
        """Drop sessions idle for longer than the configured timeout."""
        if self._idle_timeout is None:
            return []
        deadline = time.monotonic() - self._idle_timeout
        with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.last_seen < deadline]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Expired %d idle connection(s): %s", len(expired), ", ".join(expired))
        return expired
