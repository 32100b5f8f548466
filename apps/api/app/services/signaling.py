"""In-memory WebRTC signaling relay.

Rooms are keyed by the upper-cased meeting id and hold at most two
participants. Payloads are forwarded point-to-point and never inspected.
Delivery is fire-and-forget: a missing or failing target is logged and dropped."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from .tokens import normalize_token

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]

PEER_JOINED = "peer-joined"
PEER_LEFT = "peer-left"
RECEIVE_OFFER = "receive-offer"
CALL_ACCEPTED = "call-accepted"


@dataclass(slots=True)
class SignalingConnection:
    """Connection wrapper for signaling participants."""

    connection_id: str
    send: SendCallable
    room: str | None = None


class DuplicateConnectionError(RuntimeError):
    """Raised when a connection id is registered twice."""


class RoomFullError(RuntimeError):
    """Raised when joining a room that already holds its maximum participants."""

    def __init__(self, room: str, capacity: int) -> None:
        super().__init__(f"Room {room} is full ({capacity} participants)")
        self.room = room
        self.capacity = capacity


class SignalingManager:
    """Track connections and rooms, and forward handshake messages between peers."""

    def __init__(
        self,
        *,
        room_capacity: int = 2,
        require_shared_room: bool = False,
        notify_peer_left: bool = False,
    ) -> None:
        self._connections: Dict[str, SignalingConnection] = {}
        self._rooms: Dict[str, Dict[str, SignalingConnection]] = {}
        self._lock = asyncio.Lock()
        self.room_capacity = room_capacity
        self.require_shared_room = require_shared_room
        self.notify_peer_left = notify_peer_left

    async def register(self, connection: SignalingConnection) -> None:
        """Make a connection addressable by its id."""

        async with self._lock:
            if connection.connection_id in self._connections:
                raise DuplicateConnectionError(connection.connection_id)
            self._connections[connection.connection_id] = connection

    async def join(self, room: str, connection_id: str) -> list[str]:
        """Add the connection to ``room`` and return the other participant IDs.

        Existing members are told about the newcomer before the lock is released,
        so notifications follow the order of joins.
        """

        room = normalize_token(room)
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                raise KeyError(connection_id)

            participants = self._rooms.get(room, {})
            if connection.room == room:
                return [pid for pid in participants if pid != connection_id]
            if len(participants) >= self.room_capacity:
                raise RoomFullError(room, self.room_capacity)

            previous = connection.room
            if previous is not None:
                self._remove_from_room(previous, connection_id)

            participants = self._rooms.setdefault(room, {})
            others = list(participants.values())
            participants[connection_id] = connection
            connection.room = room

            await self._deliver_all(others, {"type": PEER_JOINED, "connection_id": connection_id})

        logger.info("Connection %s joined room %s", connection_id, room)
        return [other.connection_id for other in others]

    async def send_offer(self, target_id: str, caller_id: str, signal: Any, *, sender_id: str | None = None) -> bool:
        """Forward an offer to ``target_id`` as a ``receive-offer`` event."""

        logger.debug("Forwarding offer from %s to %s", caller_id, target_id)
        message = {"type": RECEIVE_OFFER, "caller_id": caller_id, "signal": signal}
        return await self._send_to(target_id, message, sender_id=sender_id or caller_id)

    async def accept_offer(self, responder_id: str, caller_id: str, signal: Any) -> bool:
        """Forward an answer back to ``caller_id`` as a ``call-accepted`` event."""

        logger.debug("Forwarding answer from %s to %s", responder_id, caller_id)
        message = {"type": CALL_ACCEPTED, "responder_id": responder_id, "signal": signal}
        return await self._send_to(caller_id, message, sender_id=responder_id)

    async def disconnect(self, connection_id: str) -> str | None:
        """Forget the connection and leave its room. Return the room it was in."""

        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None or connection.room is None:
                return None
            room = connection.room
            self._remove_from_room(room, connection_id)
            connection.room = None
            remaining = list(self._rooms.get(room, {}).values())

        if self.notify_peer_left and remaining:
            await self._deliver_all(remaining, {"type": PEER_LEFT, "connection_id": connection_id})
        logger.info("Connection %s left room %s", connection_id, room)
        return room

    async def participants(self, room: str) -> list[str]:
        async with self._lock:
            return list(self._rooms.get(normalize_token(room), {}))

    async def room_of(self, connection_id: str) -> str | None:
        async with self._lock:
            connection = self._connections.get(connection_id)
            return connection.room if connection else None

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def _remove_from_room(self, room: str, connection_id: str) -> None:
        participants = self._rooms.get(room)
        if not participants:
            return
        participants.pop(connection_id, None)
        if not participants:
            self._rooms.pop(room, None)

    async def _send_to(self, target_id: str, message: dict, *, sender_id: str) -> bool:
        async with self._lock:
            target = self._connections.get(target_id)
            if target is not None and self.require_shared_room:
                sender = self._connections.get(sender_id)
                if sender is None or sender.room is None or sender.room != target.room:
                    logger.info("Dropping %s from %s: %s is not in the same room", message["type"], sender_id, target_id)
                    return False

        if target is None:
            logger.debug("Dropping %s for unknown connection %s", message["type"], target_id)
            return False

        return await self._deliver(target, message)

    async def _deliver_all(self, connections: list[SignalingConnection], message: dict) -> None:
        if connections:
            await asyncio.gather(*(self._deliver(connection, message) for connection in connections))

    async def _deliver(self, connection: SignalingConnection, message: dict) -> bool:
        try:
            await connection.send(message)
        except Exception as exc:  # noqa: BLE001 - fire-and-forget delivery
            logger.debug("Delivery to %s failed: %s", connection.connection_id, exc)
            return False
        return True
