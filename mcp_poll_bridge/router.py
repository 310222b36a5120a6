import json
import logging
import re
from http import HTTPStatus
from typing import Any
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import BridgeError, ClientInputError, HandlerFailure, SessionNotFoundError
from .framing import SSE_HEADERS, frame_connected, frame_messages, frame_ping
from .registry import SessionRegistry
from .transport import PollingTransport
from .types import StructuredCall

__all__ = [
    "FunctionRequest",
    "FunctionResponse",
    "RequestRouter",
    "extract_connection_id",
    "normalize_inbound",
]

logger = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"

_CONNECTION_ID_PATTERN = re.compile(r"[?&]connectionId=([^&]+)")


class FunctionRequest(BaseModel):
    """An HTTP call as handed over by the serverless host."""

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, str] | None = None
    body: Any = None

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("body", mode="before")
    @classmethod
    def _decode_json_body(cls, value: Any) -> Any:
        if isinstance(value, (str, bytes)) and value:
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value


class FunctionResponse(BaseModel):
    status: int = HTTPStatus.OK.value
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        status: HTTPStatus = HTTPStatus.OK,
        indent: int | None = None,
    ) -> "FunctionResponse":
        return cls(
            status=status.value,
            headers={"Content-Type": CONTENT_TYPE_JSON},
            body=json.dumps(payload, indent=indent),
        )

    @classmethod
    def event_stream(cls, body: str) -> "FunctionResponse":
        return cls(status=HTTPStatus.OK.value, headers=dict(SSE_HEADERS), body=body)

    @classmethod
    def from_error(cls, error: BridgeError) -> "FunctionResponse":
        return cls(
            status=error.status.value,
            headers={"Content-Type": CONTENT_TYPE_JSON},
            body=error.to_json(),
        )


def extract_connection_id(request: FunctionRequest) -> str | None:
    """Find the connection id wherever the host happened to put it.

    Sources are tried in order: a ``connectionId=`` match in the raw path,
    the query map, a ``connectionId`` field of a JSON body, and finally the
    path parsed as a URL.
    """
    if request.path and "connectionId=" in request.path:
        match = _CONNECTION_ID_PATTERN.search(request.path)
        if match:
            return match.group(1)

    if request.query and request.query.get("connectionId"):
        return request.query["connectionId"]

    if isinstance(request.body, dict) and request.body.get("connectionId"):
        return str(request.body["connectionId"])

    # The path may be relative, so give it a synthetic authority before parsing
    try:
        values = parse_qs(urlsplit(f"http://localhost{request.path}").query).get("connectionId")
    except ValueError:
        logger.debug("Could not parse path %r as a URL", request.path)
        return None
    if values and values[0]:
        return values[0]

    return None


def normalize_inbound(body: Any) -> Any:
    """Pick the message to hand to the protocol handler out of a request body.

    A structured call (with both ``type`` and ``name``) passes through as-is;
    otherwise a ``message`` envelope is unwrapped when present.
    """
    try:
        StructuredCall.model_validate(body)
    except ValidationError:
        pass
    else:
        return body

    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return body


def _route_matches(path: str, route: str) -> bool:
    return path == route or path.startswith(f"{route}?")


class RequestRouter:
    """Maps HTTP-shaped calls onto session open, deliver and drain operations."""

    __slots__ = ("_registry", "_transport")

    def __init__(self, registry: SessionRegistry, transport: PollingTransport) -> None:
        self._registry = registry
        self._transport = transport

    async def dispatch(self, request: FunctionRequest) -> FunctionResponse:
        logger.debug("Request: %s %s", request.method, request.path)
        self._registry.prune_idle()

        connection_id = extract_connection_id(request)
        logger.debug("Extracted connectionId: %s", connection_id or "none")

        try:
            if _route_matches(request.path, "/sse"):
                return self.open_session()
            if _route_matches(request.path, "/messages") and request.method == "POST":
                return await self.deliver(request, connection_id)
            if _route_matches(request.path, "/poll") and request.method == "GET":
                return self.drain(request, connection_id)
        except BridgeError as err:
            logger.warning("%s %s failed with %d: %s", request.method, request.path, err.status, err)
            return FunctionResponse.from_error(err)

        return self.help(request, connection_id)

    def open_session(self) -> FunctionResponse:
        session = self._registry.create_session()
        return FunctionResponse.event_stream(frame_connected(session.id))

    async def deliver(self, request: FunctionRequest, connection_id: str | None) -> FunctionResponse:
        if not connection_id:
            raise ClientInputError(
                details="Please include connectionId in the URL query parameter or request body",
                path=request.path,
                query=request.query,
            )
        if connection_id not in self._registry:
            raise SessionNotFoundError(connection_id, len(self._registry))

        message = normalize_inbound(request.body)
        logger.debug("Processing message for connection %s: %s", connection_id, message)
        try:
            await self._transport.deliver_incoming(message)
        except HandlerFailure as err:
            err.session_id = connection_id
            logger.error("Error handling message for connection %s: %s", connection_id, err)
            raise
        except Exception as err:
            logger.exception("Error handling message for connection %s", connection_id)
            raise HandlerFailure(str(err) or "Unknown error", connection_id) from err

        return FunctionResponse.from_payload({"status": "received", "connectionId": connection_id})

    def drain(self, request: FunctionRequest, connection_id: str | None) -> FunctionResponse:
        if not connection_id:
            raise ClientInputError(path=request.path, query=request.query)

        drained = self._registry.drain_messages(connection_id)
        if not drained.messages:
            return FunctionResponse.event_stream(frame_ping(drained.start_event_id + 1))
        return FunctionResponse.event_stream(frame_messages(connection_id, drained.messages, drained.start_event_id))

    def help(self, request: FunctionRequest, connection_id: str | None) -> FunctionResponse:
        payload = {
            "message": "Weather MCP Server",
            "endpoints": {
                "/sse": "Connect via SSE",
                "/messages?connectionId={id}": "Send messages (POST)",
                "/poll?connectionId={id}": "Poll for messages (GET)",
            },
            "debug": {
                "path": request.path,
                "method": request.method,
                "connectionId": connection_id or "none",
                "activeConnections": len(self._registry),
            },
        }
        return FunctionResponse.from_payload(payload, indent=2)
