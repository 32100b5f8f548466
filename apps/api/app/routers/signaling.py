"""Signaling WebSocket endpoint relaying the WebRTC handshake."""
from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..dependencies import get_signaling_manager
from ..schemas.signaling import (
    AcceptOfferMessage,
    JoinRoomMessage,
    SendOfferMessage,
    client_message_adapter,
)
from ..services.signaling import (
    DuplicateConnectionError,
    RoomFullError,
    SignalingConnection,
    SignalingManager,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(reason: str, detail: str) -> dict:
    return {"type": "error", "reason": reason, "detail": detail}


@router.websocket("/signaling")
async def signaling_endpoint(
    websocket: WebSocket,
    manager: SignalingManager = Depends(get_signaling_manager),
) -> None:
    """Relay join, offer and answer events between the two peers of a room."""

    connection_id = websocket.query_params.get("connection_id") or uuid4().hex
    await websocket.accept()

    connection = SignalingConnection(connection_id=connection_id, send=websocket.send_json)
    try:
        await manager.register(connection)
    except DuplicateConnectionError:
        await websocket.send_json(_error("duplicate-connection", "Connection id already in use"))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    logger.info("Signaling connection %s opened", connection_id)
    await websocket.send_json({"type": "connected", "connection_id": connection_id})

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = frame.get("text")
            if raw is None:
                await websocket.send_json(_error("invalid-message", "Binary frames are not supported"))
                continue
            try:
                message = client_message_adapter.validate_json(raw)
            except ValidationError as exc:
                await websocket.send_json(_error("invalid-message", str(exc.errors()[0]["msg"])))
                continue

            if isinstance(message, JoinRoomMessage):
                try:
                    participants = await manager.join(message.room_id, connection_id)
                except RoomFullError as exc:
                    await websocket.send_json(_error("room-full", str(exc)))
                    continue
                await websocket.send_json(
                    {
                        "type": "joined",
                        "room_id": message.room_id,
                        "connection_id": connection_id,
                        "participants": participants,
                    }
                )
            elif isinstance(message, SendOfferMessage):
                await manager.send_offer(
                    message.target_id,
                    message.caller_id,
                    message.signal,
                    sender_id=connection_id,
                )
            elif isinstance(message, AcceptOfferMessage):
                await manager.accept_offer(connection_id, message.caller_id, message.signal)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(connection_id)
        logger.info("Signaling connection %s closed", connection_id)
