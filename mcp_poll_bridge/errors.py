import json
from http import HTTPStatus
from typing import Any

__all__ = [
    "BridgeError",
    "ClientInputError",
    "HandlerFailure",
    "MessageDecodeError",
    "SessionNotFoundError",
    "UpstreamUnavailableError",
]


class BridgeError(Exception):
    """Base class for errors that end up as an HTTP-shaped response."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def to_body(self) -> dict[str, Any]:
        return {"error": str(self)}

    def to_json(self) -> str:
        return json.dumps(self.to_body())


class ClientInputError(BridgeError):
    """The request did not carry a usable connection id."""

    status = HTTPStatus.BAD_REQUEST

    def __init__(
        self,
        message: str = "Missing connectionId parameter",
        *,
        details: str | None = None,
        path: str | None = None,
        query: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details
        self.path = path
        self.query = query

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": str(self)}
        if self.details:
            body["details"] = self.details
        body["path"] = self.path
        body["query"] = self.query
        return body


class SessionNotFoundError(BridgeError):
    status = HTTPStatus.NOT_FOUND

    def __init__(self, session_id: str, available: int = 0) -> None:
        super().__init__("Connection not found")
        self.session_id = session_id
        self.available = available

    def to_body(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "connectionId": self.session_id,
            "availableConnections": self.available,
        }


class UpstreamUnavailableError(BridgeError):
    """The upstream data provider failed or answered with a non-success status."""

    status = HTTPStatus.BAD_GATEWAY


class HandlerFailure(BridgeError):
    """The protocol handler raised while processing a delivered message."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id

    def to_body(self) -> dict[str, Any]:
        return {"error": str(self), "connectionId": self.session_id}


class MessageDecodeError(HandlerFailure):
    """A delivered message is neither a tool call nor a JSON-RPC message."""
