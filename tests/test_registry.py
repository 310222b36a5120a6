import pytest

from mcp_poll_bridge.errors import SessionNotFoundError
from mcp_poll_bridge.registry import SessionRegistry


def test_create_session_starts_empty(registry: SessionRegistry) -> None:
    session = registry.create_session()

    assert session.pending_messages == []
    assert session.last_event_id == 0
    assert registry.find_session(session.id) is session
    assert len(registry) == 1


def test_session_ids_are_unique_within_the_same_tick() -> None:
    registry = SessionRegistry(id_factory=lambda: "1700000000000")

    ids = [registry.create_session().id for _ in range(50)]

    assert len(set(ids)) == 50
    assert ids[0] == "1700000000000"
    assert ids[1] == "1700000000000-1"


def test_default_ids_do_not_collide(registry: SessionRegistry) -> None:
    ids = {registry.create_session().id for _ in range(200)}
    assert len(ids) == 200


def test_find_unknown_session_returns_none(registry: SessionRegistry) -> None:
    assert registry.find_session("missing") is None
    assert "missing" not in registry


def test_drain_preserves_order_and_advances_cursor(registry: SessionRegistry) -> None:
    session = registry.create_session()
    for payload in ("m1", "m2", "m3"):
        registry.append_message(session.id, payload)

    drained = registry.drain_messages(session.id)

    assert drained.messages == ["m1", "m2", "m3"]
    assert drained.start_event_id == 0
    assert session.last_event_id == 3

    registry.append_message(session.id, "m4")
    drained = registry.drain_messages(session.id)
    assert drained.messages == ["m4"]
    assert drained.start_event_id == 3
    assert session.last_event_id == 4


def test_drain_is_destructive(registry: SessionRegistry) -> None:
    session = registry.create_session()
    registry.append_message(session.id, "m1")

    assert registry.drain_messages(session.id).messages == ["m1"]
    second = registry.drain_messages(session.id)
    assert second.messages == []
    assert second.start_event_id == 1
    assert session.last_event_id == 2


def test_unknown_session_operations_raise(registry: SessionRegistry) -> None:
    registry.create_session()

    with pytest.raises(SessionNotFoundError) as exc_info:
        registry.append_message("missing", "payload")
    assert exc_info.value.session_id == "missing"
    assert exc_info.value.available == 1

    with pytest.raises(SessionNotFoundError):
        registry.drain_messages("missing")


def test_broadcast_reaches_every_session(registry: SessionRegistry) -> None:
    first = registry.create_session()
    second = registry.create_session()

    assert registry.broadcast(lambda: "hello") == 2
    assert first.pending_messages == ["hello"]
    assert second.pending_messages == ["hello"]


def test_broadcast_skips_sessions_that_fail_to_serialize(registry: SessionRegistry) -> None:
    first = registry.create_session()
    second = registry.create_session()
    results = iter([TypeError("not serializable"), "ok"])

    def serialize() -> str:
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    assert registry.broadcast(serialize) == 1
    assert first.pending_messages == []
    assert second.pending_messages == ["ok"]


def test_sessions_never_expire_by_default(registry: SessionRegistry) -> None:
    registry.create_session()
    assert registry.prune_idle() == []
    assert len(registry) == 1


def test_prune_idle_drops_stale_sessions() -> None:
    registry = SessionRegistry(idle_timeout=60)
    stale = registry.create_session()
    fresh = registry.create_session()
    stale.last_seen -= 120

    assert registry.prune_idle() == [stale.id]
    assert registry.find_session(stale.id) is None
    assert registry.find_session(fresh.id) is fresh
