"""Broadcast service: the single choke point for presence and message fan-out.

Every inbound join, message, and disconnect passes through
``BroadcastService``, which updates the presence registry and history
buffer and enqueues the resulting outbound events.

Delivery Model:
    Each connection owns an ``Outbox`` (a bounded asyncio.Queue) drained by
    a writer task. Fan-out only calls ``put_nowait`` on the outboxes of the
    users registered at call time, so a handler never awaits between
    mutating shared state and enqueueing the result. All recipients
    therefore see events in the same order, and a slow or dead client only
    fills or closes its own outbox.

Thread Safety:
    Designed for a single event loop. It is NOT thread-safe.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .history import HistoryBuffer
from .presence import PresenceRegistry
from .schemas import (
    ChatMessageEvent,
    FileMessage,
    FileMessageEvent,
    ImageMessage,
    ImageMessageEvent,
    JoinEvent,
    Message,
    MessageEvent,
    OutboundEvent,
    PresenceUpdate,
    TextMessage,
    User,
)

logger = logging.getLogger(__name__)

# Default bound for a connection's pending outbound events
DEFAULT_OUTBOX_SIZE = 256

# Length of the connection ID suffix used in generated display names
NAME_SUFFIX_LENGTH = 4


# =============================================================================
# Outbox
# =============================================================================


class Outbox:
    """Per-connection queue of outbound envelopes.

    Producers call ``put`` (never blocks). One writer task runs ``run``,
    which forwards envelopes to the transport until the outbox is closed
    or a send fails.
    """

    def __init__(self, connection_id: str, maxsize: int = DEFAULT_OUTBOX_SIZE) -> None:
        self.connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, envelope: Dict[str, Any]) -> bool:
        """Enqueue an envelope without waiting.

        Returns:
            True if enqueued, False if the outbox is closed or full.
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(envelope)
            return True
        except asyncio.QueueFull:
            logger.warning(
                f"[Outbox] Queue full for connection {self.connection_id}, "
                f"dropping '{envelope.get('type')}' event"
            )
            return False

    def drain_nowait(self) -> List[Dict[str, Any]]:
        """Remove and return every pending envelope."""
        items = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None:
                items.append(item)
        return items

    def close(self) -> None:
        """Stop accepting envelopes and wake the writer. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def run(self, send: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Forward envelopes to ``send`` until closed or a send fails."""
        while True:
            envelope = await self._queue.get()
            if envelope is None or self._closed:
                break
            try:
                await send(envelope)
            except Exception as e:
                logger.debug(f"[Outbox] Failed to send to connection {self.connection_id}: {e}")
                self.close()
                break


# =============================================================================
# Message construction
# =============================================================================


def build_message(user: User, event: MessageEvent) -> Message:
    """Create the Message for a validated inbound message event.

    The server assigns ``id`` and ``timestamp``; the user record is the
    sender's registry entry as of now. Users are frozen, so later
    re-joins do not alter stored messages.
    """
    if isinstance(event, ChatMessageEvent):
        return TextMessage(user=user, text=event.text)
    if isinstance(event, ImageMessageEvent):
        return ImageMessage(user=user, url=event.url, filename=event.filename)
    if isinstance(event, FileMessageEvent):
        return FileMessage(
            user=user,
            url=event.url,
            filename=event.filename,
            originalname=event.originalname,
            size=event.size,
        )
    raise TypeError(f"Unsupported message event: {type(event).__name__}")


def _describe(message: Message) -> str:
    if isinstance(message, TextMessage):
        return message.text[:50]
    if isinstance(message, FileMessage):
        return message.originalname
    return message.filename


# =============================================================================
# Broadcast Service
# =============================================================================


class BroadcastService:
    """Validates senders, records messages, and fans out events.

    Owns no global state: the registry and history buffer are injected at
    construction and live for the lifetime of the application.

    Args:
        registry: Presence registry of joined connections.
        history: Buffer replayed to newly joined connections.
        default_name_prefix: Prefix for generated display names.
        max_name_length: Display names are truncated to this length.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        history: HistoryBuffer,
        default_name_prefix: str = "User",
        max_name_length: int = 64,
    ) -> None:
        self.registry = registry
        self.history = history
        self.default_name_prefix = default_name_prefix
        self.max_name_length = max_name_length

        # connection_id -> Outbox for every open connection (joined or not)
        self._outboxes: Dict[str, Outbox] = {}

    # =========================================================================
    # Transport binding
    # =========================================================================

    def attach(self, connection_id: str, outbox: Outbox) -> None:
        self._outboxes[connection_id] = outbox

    def detach(self, connection_id: str) -> Optional[Outbox]:
        return self._outboxes.pop(connection_id, None)

    def send_private(
        self, connection_id: str, event: OutboundEvent, data: Dict[str, Any]
    ) -> bool:
        """Enqueue an event for a single connection."""
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            logger.debug(f"[Chat] No outbox for connection {connection_id}, dropping '{event.value}'")
            return False
        return outbox.put({"type": event.value, **data})

    def broadcast(self, event: OutboundEvent, data: Dict[str, Any]) -> int:
        """Enqueue an event for every user registered at call time.

        Returns:
            Number of connections the event was enqueued for.
        """
        envelope = {"type": event.value, **data}
        delivered = 0
        for user in self.registry.list():
            outbox = self._outboxes.get(user.id)
            if outbox is not None and outbox.put(envelope):
                delivered += 1
        return delivered

    # =========================================================================
    # Event handlers
    # =========================================================================

    def resolve_name(self, connection_id: str, requested: Optional[str]) -> str:
        """Display name for a join: the requested name, or a generated one."""
        name = (requested or "").strip()[: self.max_name_length]
        if not name:
            name = f"{self.default_name_prefix}{connection_id[-NAME_SUFFIX_LENGTH:]}"
        return name

    def handle_join(self, connection_id: str, event: JoinEvent, ip: str) -> User:
        """Register the user, replay history privately, then announce the join.

        The history envelope is enqueued before the userJoined broadcast, so
        the joiner always receives its replay first.
        """
        user = self.registry.register(
            connection_id, self.resolve_name(connection_id, event.name), ip
        )

        self.send_private(
            connection_id,
            OutboundEvent.HISTORY,
            {"messages": [m.model_dump(mode="json") for m in self.history.snapshot()]},
        )
        self.broadcast(OutboundEvent.USER_JOINED, self._presence_payload(user))

        logger.info(f"[Chat] {user.name} joined ({ip}). Online: {self.registry.count()}")
        return user

    def handle_message(self, connection_id: str, event: MessageEvent) -> Optional[Message]:
        """Record and fan out a message from a joined connection.

        Events from connections that have not joined are dropped without
        touching the history or notifying anyone.

        Returns:
            The stored Message, or None if the event was dropped.
        """
        user = self.registry.get(connection_id)
        if user is None:
            logger.debug(f"[Chat] Dropping '{event.type}' from unjoined connection {connection_id}")
            return None

        message = self.history.append(build_message(user, event))
        self.broadcast(OutboundEvent.MESSAGE, {"message": message.model_dump(mode="json")})

        logger.info(f"[Chat] {message.type} from {user.name}: {_describe(message)}")
        return message

    def handle_disconnect(self, connection_id: str) -> Optional[User]:
        """Forget a connection and announce the departure if it had joined.

        Returns:
            The departed User, or None if the connection never joined.
        """
        self.detach(connection_id)
        user = self.registry.remove(connection_id)
        if user is None:
            return None

        self.broadcast(OutboundEvent.USER_LEFT, self._presence_payload(user))
        logger.info(f"[Chat] {user.name} left ({user.ip}). Online: {self.registry.count()}")
        return user

    def _presence_payload(self, user: User) -> Dict[str, Any]:
        return PresenceUpdate(
            user=user,
            onlineCount=self.registry.count(),
            onlineUsers=self.registry.list(),
        ).model_dump(mode="json")
