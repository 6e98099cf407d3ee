"""Per-connection lifecycle state machine.

A ``ConnectionSession`` binds one transport connection to the broadcast
service. It validates raw inbound payloads and routes them by state:

    CONNECTED --join--> JOINED --message(s)--> JOINED
    CONNECTED | JOINED --close--> CLOSED (terminal)

Message events before a join are ignored, and nothing is processed once
the session is closed. All side effects live in ``BroadcastService``.
"""
import logging
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from .broadcast import BroadcastService, Outbox
from .schemas import ChatMessageEvent, JoinEvent, OutboundEvent, User, inbound_event_adapter

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle state of a connection.

    Attributes:
        CONNECTED: Socket open, join not yet received.
        JOINED: Registered in the presence registry.
        CLOSED: Disconnected; terminal.
    """
    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


class ConnectionSession:
    """State machine for a single connection.

    Args:
        connection_id: Server-assigned identifier for the connection.
        ip: Origin address, resolved once when the socket opened.
        service: Shared broadcast service.
        outbox: Outbound queue for this connection. Attached to the service
            on construction.
        max_text_length: Upper bound for chatMessage text.
    """

    def __init__(
        self,
        connection_id: str,
        ip: str,
        service: BroadcastService,
        outbox: Outbox,
        max_text_length: int = 10000,
    ) -> None:
        self.connection_id = connection_id
        self.ip = ip
        self.service = service
        self.outbox = outbox
        self.max_text_length = max_text_length
        self.state = SessionState.CONNECTED

        service.attach(connection_id, outbox)

    def handle_raw(self, data: Any) -> None:
        """Validate and dispatch one inbound payload.

        Malformed payloads are answered with a private error event and
        leave the state unchanged.
        """
        if self.state is SessionState.CLOSED:
            logger.debug(f"[WS] Ignoring event for closed connection {self.connection_id}")
            return

        try:
            event = inbound_event_adapter.validate_python(data)
        except ValidationError as e:
            self.reject(f"Invalid event: {_format_errors(e)}")
            return

        if isinstance(event, JoinEvent):
            self.service.handle_join(self.connection_id, event, self.ip)
            self.state = SessionState.JOINED
            return

        if self.state is not SessionState.JOINED:
            logger.debug(
                f"[WS] Dropping '{event.type}' from connection {self.connection_id} before join"
            )
            return

        if isinstance(event, ChatMessageEvent) and len(event.text) > self.max_text_length:
            self.reject(f"Invalid event: text exceeds {self.max_text_length} characters")
            return

        self.service.handle_message(self.connection_id, event)

    def reject(self, error: str) -> None:
        """Send an error event to this connection only."""
        logger.warning(f"[WS] Rejected payload from connection {self.connection_id}: {error}")
        self.service.send_private(self.connection_id, OutboundEvent.ERROR, {"error": error})

    def close(self) -> Optional[User]:
        """Move to CLOSED, announcing the departure on the first call only.

        Returns:
            The departed User on the first close of a joined session,
            None otherwise.
        """
        if self.state is SessionState.CLOSED:
            return None
        self.state = SessionState.CLOSED
        user = self.service.handle_disconnect(self.connection_id)
        self.outbox.close()
        return user
