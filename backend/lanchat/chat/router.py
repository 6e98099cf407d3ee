"""Chat router providing the WebSocket endpoint.

This module provides:
    - WebSocket /ws: Real-time chat for the LAN room

Protocol Flow:
    1. Client connects → server assigns a connection ID (never client-provided)
    2. Client sends: {type: "join", name?}
       → Server sends privately: {type: "history", messages: [...]}
       → Server broadcasts: {type: "userJoined", user, onlineCount, onlineUsers}
    3. Client sends: {type: "chatMessage", text}
                   | {type: "imageMessage", url, filename}
                   | {type: "fileMessage", url, filename, originalname, size}
       → Server broadcasts: {type: "message", message: {...}}
    4. On disconnect → Server broadcasts: {type: "userLeft", user, onlineCount, onlineUsers}

Malformed events get a private {type: "error", error} reply.
"""
import asyncio
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from .broadcast import BroadcastService, Outbox
from .lifecycle import ConnectionSession
from lanchat.config import ChatSettings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_broadcast_service(websocket: WebSocket) -> BroadcastService:
    """Shared broadcast service created by the application factory."""
    return websocket.app.state.broadcast_service


def get_chat_settings(websocket: WebSocket) -> ChatSettings:
    """Chat limits of the application serving this connection."""
    return websocket.app.state.config.chat


async def receive_event(websocket: WebSocket) -> Any:
    """Read one frame and decode it as JSON.

    Text and binary frames are both accepted.

    Raises:
        WebSocketDisconnect: The client went away.
        ValueError: The frame is not valid UTF-8 JSON.
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

    raw = message.get("text")
    if raw is None:
        raw = message.get("bytes") or b""
    return json.loads(raw)


def resolve_client_ip(websocket: WebSocket) -> str:
    """Best-effort origin address: X-Forwarded-For first, then the peer."""
    forwarded = websocket.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if websocket.client and websocket.client.host:
        return websocket.client.host
    return "unknown"


@router.websocket("/ws")
async def websocket_chat_endpoint(
    websocket: WebSocket,
    service: BroadcastService = Depends(get_broadcast_service),
    chat_config: ChatSettings = Depends(get_chat_settings),
) -> None:
    """WebSocket endpoint handling the full lifecycle of one connection.

    Outbound events are written by a dedicated task draining this
    connection's outbox; the receive loop only validates and dispatches.

    Args:
        websocket: The WebSocket connection.
        service: Shared broadcast service.
        chat_config: Chat limits (outbox size, text length).
    """
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    ip = resolve_client_ip(websocket)

    outbox = Outbox(connection_id, maxsize=chat_config.outbox_size)
    session = ConnectionSession(
        connection_id,
        ip,
        service,
        outbox,
        max_text_length=chat_config.max_text_length,
    )
    writer = asyncio.create_task(outbox.run(websocket.send_json))
    logger.info(f"[WS] {ip} connected, connection ID: {connection_id}")

    try:
        while True:
            try:
                data = await receive_event(websocket)
            except ValueError:
                session.reject("Invalid event: payload is not valid JSON")
                continue
            session.handle_raw(data)
    except WebSocketDisconnect:
        logger.info(f"[WS] {ip} disconnected, connection ID: {connection_id}")
    finally:
        session.close()
        await writer
