"""Tests for the per-connection lifecycle state machine."""
import pytest

from lanchat.chat.broadcast import BroadcastService, Outbox
from lanchat.chat.history import HistoryBuffer
from lanchat.chat.lifecycle import ConnectionSession, SessionState
from lanchat.chat.presence import PresenceRegistry


@pytest.fixture
def service():
    return BroadcastService(PresenceRegistry(), HistoryBuffer())


def open_session(service, connection_id="conn-1", ip="10.0.0.5", **kwargs):
    return ConnectionSession(connection_id, ip, service, Outbox(connection_id), **kwargs)


def types_of(session):
    return [e["type"] for e in session.outbox.drain_nowait()]


class TestTransitions:

    def test_starts_connected_and_attached(self, service):
        session = open_session(service)
        assert session.state is SessionState.CONNECTED
        assert service.detach("conn-1") is session.outbox

    def test_join_moves_to_joined(self, service):
        session = open_session(service)
        session.handle_raw({"type": "join", "name": "Alice"})

        assert session.state is SessionState.JOINED
        user = service.registry.get("conn-1")
        assert user.name == "Alice"
        assert user.ip == "10.0.0.5"
        assert types_of(session) == ["history", "userJoined"]

    def test_message_before_join_is_ignored(self, service):
        session = open_session(service)
        session.handle_raw({"type": "chatMessage", "text": "too early"})

        assert session.state is SessionState.CONNECTED
        assert len(service.history) == 0
        assert session.outbox.drain_nowait() == []

    def test_messages_in_joined_state(self, service):
        session = open_session(service)
        session.handle_raw({"type": "join"})
        session.outbox.drain_nowait()

        session.handle_raw({"type": "chatMessage", "text": "one"})
        session.handle_raw({"type": "imageMessage", "url": "/uploads/a.png", "filename": "a.png"})
        session.handle_raw({
            "type": "fileMessage",
            "url": "/uploads/b.zip",
            "filename": "b.zip",
            "originalname": "b.zip",
            "size": 10,
        })

        assert session.state is SessionState.JOINED
        assert [m.type for m in service.history.snapshot()] == ["text", "image", "file"]
        assert types_of(session) == ["message", "message", "message"]

    def test_close_is_terminal_and_idempotent(self, service):
        other = open_session(service, "conn-2")
        other.handle_raw({"type": "join", "name": "Bob"})
        session = open_session(service)
        session.handle_raw({"type": "join", "name": "Alice"})
        other.outbox.drain_nowait()

        assert session.close().name == "Alice"
        assert session.close() is None
        assert session.state is SessionState.CLOSED
        assert session.outbox.closed
        assert types_of(other) == ["userLeft"]

    def test_events_after_close_are_ignored(self, service):
        session = open_session(service)
        session.handle_raw({"type": "join", "name": "Alice"})
        session.close()

        session.handle_raw({"type": "join", "name": "Again"})
        session.handle_raw({"type": "chatMessage", "text": "late"})

        assert service.registry.count() == 0
        assert len(service.history) == 0
        assert session.state is SessionState.CLOSED

    def test_close_before_join_emits_nothing(self, service):
        watcher = open_session(service, "conn-2")
        watcher.handle_raw({"type": "join", "name": "Watcher"})
        watcher.outbox.drain_nowait()

        session = open_session(service)
        assert session.close() is None
        assert watcher.outbox.drain_nowait() == []


class TestValidation:

    @pytest.mark.parametrize("payload", [
        {},
        {"type": "unknown"},
        {"type": "chatMessage"},
        {"type": "chatMessage", "text": ""},
        {"type": "chatMessage", "text": "   "},
        {"type": "chatMessage", "text": 42},
        {"type": "imageMessage", "filename": "a.png"},
        {"type": "fileMessage", "url": "/u", "filename": "f", "originalname": "f", "size": -1},
        ["not", "an", "object"],
        "join",
    ])
    def test_malformed_payload_gets_private_error(self, service, payload):
        watcher = open_session(service, "conn-2")
        watcher.handle_raw({"type": "join", "name": "Watcher"})
        session = open_session(service)
        session.handle_raw({"type": "join", "name": "Alice"})
        session.outbox.drain_nowait()
        watcher.outbox.drain_nowait()

        session.handle_raw(payload)

        (envelope,) = session.outbox.drain_nowait()
        assert envelope["type"] == "error"
        assert envelope["error"].startswith("Invalid event")
        assert watcher.outbox.drain_nowait() == []
        assert len(service.history) == 0
        assert session.state is SessionState.JOINED

    def test_text_over_limit_is_rejected(self, service):
        session = open_session(service, max_text_length=10)
        session.handle_raw({"type": "join"})
        session.outbox.drain_nowait()

        session.handle_raw({"type": "chatMessage", "text": "x" * 11})

        assert types_of(session) == ["error"]
        assert len(service.history) == 0

    def test_malformed_join_keeps_connected_state(self, service):
        session = open_session(service)
        session.handle_raw({"type": "join", "name": ["not", "a", "string"]})

        assert session.state is SessionState.CONNECTED
        assert service.registry.count() == 0
        assert types_of(session) == ["error"]
