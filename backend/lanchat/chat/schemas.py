"""Pydantic models for the chat hub.

This module defines the wire and domain types exchanged over the WebSocket:

- User: identity of one joined connection
- TextMessage / ImageMessage / FileMessage: the closed ``Message`` union
- JoinEvent / ChatMessageEvent / ImageMessageEvent / FileMessageEvent:
  the closed union of inbound client events, validated at the boundary
- PresenceUpdate: payload of the userJoined / userLeft broadcasts

All domain models are frozen. Field names use the camelCase keys the web
client expects, so ``model_dump(mode="json")`` is the wire format.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class User(BaseModel):
    """Identity of a joined connection.

    Attributes:
        id: Connection identifier (server generated).
        name: Display name shown in the chat UI.
        ip: Origin address, resolved once when the socket opened.
        joinedAt: When the join event was processed.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Connection ID")
    name: str = Field(..., description="Display name shown in UI")
    ip: str = Field(default="unknown", description="Origin address")
    joinedAt: datetime = Field(default_factory=utcnow, description="Join time (UTC)")


class _MessageBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="Unique message ID")
    user: User = Field(..., description="Sender as of send time")
    timestamp: datetime = Field(default_factory=utcnow, description="Server receipt time (UTC)")


class TextMessage(_MessageBase):
    type: Literal["text"] = "text"
    text: str


class ImageMessage(_MessageBase):
    type: Literal["image"] = "image"
    url: str
    filename: str


class FileMessage(_MessageBase):
    type: Literal["file"] = "file"
    url: str
    filename: str
    originalname: str
    size: int


Message = Annotated[
    Union[TextMessage, ImageMessage, FileMessage],
    Field(discriminator="type"),
]


class PresenceUpdate(BaseModel):
    """Payload of the userJoined and userLeft broadcasts."""
    user: User
    onlineCount: int
    onlineUsers: List[User]


# =============================================================================
# Inbound events
# =============================================================================


class JoinEvent(BaseModel):
    type: Literal["join"]
    name: Optional[str] = None


class ChatMessageEvent(BaseModel):
    type: Literal["chatMessage"]
    text: str = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class ImageMessageEvent(BaseModel):
    type: Literal["imageMessage"]
    url: str = Field(..., min_length=1)
    filename: str


class FileMessageEvent(BaseModel):
    type: Literal["fileMessage"]
    url: str = Field(..., min_length=1)
    filename: str
    originalname: str
    size: int = Field(..., ge=0)


MessageEvent = Union[ChatMessageEvent, ImageMessageEvent, FileMessageEvent]

InboundEvent = Annotated[
    Union[JoinEvent, ChatMessageEvent, ImageMessageEvent, FileMessageEvent],
    Field(discriminator="type"),
]

inbound_event_adapter: TypeAdapter = TypeAdapter(InboundEvent)


class OutboundEvent(str, Enum):
    """Names of the events the server sends to clients."""
    HISTORY = "history"
    USER_JOINED = "userJoined"
    MESSAGE = "message"
    USER_LEFT = "userLeft"
    ERROR = "error"
