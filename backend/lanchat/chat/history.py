"""Bounded in-memory message history.

Keeps the most recent messages in arrival order so newly joined
connections can be given a replay. Older messages are evicted FIFO once
the buffer is full. Nothing survives a restart.
"""
import logging
from collections import deque
from typing import Deque, List

from .schemas import Message

logger = logging.getLogger(__name__)

# Default number of messages replayed to new connections
MAX_HISTORY = 100


class HistoryBuffer:
    """Fixed-capacity, append-only log of past messages.

    Messages are frozen pydantic models, so entries cannot change after
    ``append``. The buffer is not thread-safe; it is owned by a single
    event loop.
    """

    def __init__(self, capacity: int = MAX_HISTORY) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")
        self._messages: Deque[Message] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen

    def append(self, message: Message) -> Message:
        """Add a message to the tail, evicting the oldest when full.

        Returns:
            The same message (for chaining).
        """
        if len(self._messages) == self._messages.maxlen:
            logger.debug("[History] Evicting message %s", self._messages[0].id)
        self._messages.append(message)
        return message

    def snapshot(self) -> List[Message]:
        """Current contents, oldest first. The buffer is left untouched."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
