import json
from typing import Any

import pytest
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage, JSONRPCResponse

from mcp_poll_bridge.registry import SessionRegistry
from mcp_poll_bridge.transport import MessageConverter, PollingTransport

# Set the pytest marker for async tests/fixtures
pytestmark = pytest.mark.anyio


async def test_send_before_start_is_dropped(registry: SessionRegistry, transport: PollingTransport) -> None:
    session = registry.create_session()

    await transport.send({"hello": "world"})

    assert session.pending_messages == []


async def test_send_broadcasts_to_all_sessions(registry: SessionRegistry, transport: PollingTransport) -> None:
    """Outbound messages are not addressed: every open session gets every message."""
    first = registry.create_session()
    second = registry.create_session()
    await transport.start()

    await transport.send({"hello": "world"})

    assert first.pending_messages == ['{"hello": "world"}']
    assert second.pending_messages == ['{"hello": "world"}']


async def test_send_skips_unserializable_message(registry: SessionRegistry, transport: PollingTransport) -> None:
    session = registry.create_session()
    await transport.start()

    await transport.send({"value": object()})

    assert session.pending_messages == []


async def test_start_is_idempotent_and_stop_disconnects(transport: PollingTransport) -> None:
    await transport.start()
    await transport.start()
    assert transport.is_connected

    await transport.stop()
    assert not transport.is_connected


async def test_receive_is_unsupported(transport: PollingTransport) -> None:
    with pytest.raises(NotImplementedError):
        await transport.receive()


async def test_deliver_incoming_invokes_callback(transport: PollingTransport) -> None:
    received: list[Any] = []

    async def callback(message: Any) -> None:
        received.append(message)

    transport.on_message(callback)
    await transport.deliver_incoming({"type": "tool_call", "name": "x"})

    assert received == [{"type": "tool_call", "name": "x"}]


async def test_deliver_incoming_without_callback_is_dropped(transport: PollingTransport) -> None:
    await transport.deliver_incoming({"anything": True})


async def test_deliver_incoming_propagates_callback_errors(transport: PollingTransport) -> None:
    async def callback(message: Any) -> None:
        raise RuntimeError("boom")

    transport.on_message(callback)
    with pytest.raises(RuntimeError, match="boom"):
        await transport.deliver_incoming({})


def test_message_converter_handles_session_messages() -> None:
    message = JSONRPCMessage(JSONRPCResponse(jsonrpc="2.0", id=1, result={}))

    text = MessageConverter.to_string(SessionMessage(message))

    assert json.loads(text) == {"jsonrpc": "2.0", "id": 1, "result": {}}


def test_message_converter_handles_plain_values() -> None:
    assert MessageConverter.to_string({"a": [1, 2]}) == '{"a": [1, 2]}'
