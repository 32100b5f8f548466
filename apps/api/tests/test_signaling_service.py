"""Tests for signaling manager and websocket endpoint."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app
from app.services.signaling import (
    DuplicateConnectionError,
    RoomFullError,
    SignalingConnection,
    SignalingManager,
)


class DummyConnection:
    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.messages: list[dict] = []

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    def as_signaling(self) -> SignalingConnection:
        return SignalingConnection(self.connection_id, self.send)


class BrokenConnection(DummyConnection):
    async def send(self, message: dict) -> None:
        raise RuntimeError("socket closed")


async def connect(manager: SignalingManager, connection_id: str) -> DummyConnection:
    conn = DummyConnection(connection_id)
    await manager.register(conn.as_signaling())
    return conn


@pytest.mark.asyncio
async def test_join_notifies_existing_members_once():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    conn_b = await connect(manager, "b")

    assert await manager.join("ABCD2345", "a") == []
    assert await manager.join("ABCD2345", "b") == ["a"]

    assert conn_a.messages == [{"type": "peer-joined", "connection_id": "b"}]
    assert conn_b.messages == []
    assert await manager.participants("ABCD2345") == ["a", "b"]


@pytest.mark.asyncio
async def test_rejoining_same_room_does_not_renotify():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")

    assert await manager.join("room-1", "b") == ["a"]
    assert conn_a.messages == [{"type": "peer-joined", "connection_id": "b"}]


@pytest.mark.asyncio
async def test_peer_joined_follows_join_order():
    manager = SignalingManager(room_capacity=3)
    conn_a = await connect(manager, "a")
    conn_b = await connect(manager, "b")
    await connect(manager, "c")

    await manager.join("room-1", "a")
    await manager.join("room-1", "b")
    await manager.join("room-1", "c")

    assert [m["connection_id"] for m in conn_a.messages] == ["b", "c"]
    assert [m["connection_id"] for m in conn_b.messages] == ["c"]


@pytest.mark.asyncio
async def test_room_is_limited_to_two_participants():
    manager = SignalingManager()
    for cid in ("a", "b", "c"):
        await connect(manager, cid)
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")

    with pytest.raises(RoomFullError):
        await manager.join("room-1", "c")
    assert await manager.participants("room-1") == ["a", "b"]
    assert await manager.room_of("c") is None


@pytest.mark.asyncio
async def test_room_ids_are_case_insensitive():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await manager.join("ABCD2345", "a")

    others = await manager.join("abcd2345", "b")

    assert others == ["a"]
    assert manager.room_count == 1
    assert await manager.participants(" abcd2345 ") == ["a", "b"]
    assert conn_a.messages == [{"type": "peer-joined", "connection_id": "b"}]


@pytest.mark.asyncio
async def test_joining_another_room_leaves_the_first():
    manager = SignalingManager()
    await connect(manager, "a")
    await manager.join("room-1", "a")

    await manager.join("room-2", "a")

    assert await manager.participants("room-1") == []
    assert await manager.room_of("a") == "ROOM-2"
    assert manager.room_count == 1


@pytest.mark.asyncio
async def test_offer_and_answer_are_point_to_point():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    conn_b = await connect(manager, "b")
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")
    conn_a.messages.clear()

    offer = {"type": "offer", "sdp": "v=0"}
    assert await manager.send_offer("a", "b", offer) is True
    assert conn_a.messages == [{"type": "receive-offer", "caller_id": "b", "signal": offer}]
    assert conn_b.messages == []

    answer = {"type": "answer", "sdp": "v=0"}
    assert await manager.accept_offer("a", "b", answer) is True
    assert conn_b.messages == [{"type": "call-accepted", "responder_id": "a", "signal": answer}]


@pytest.mark.asyncio
async def test_offer_to_unknown_connection_is_dropped():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")

    assert await manager.send_offer("ghost", "a", {"sdp": "x"}) is False
    assert await manager.accept_offer("a", "ghost", {"sdp": "x"}) is False
    assert conn_a.messages == []


@pytest.mark.asyncio
async def test_offer_ignores_rooms_by_default():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await manager.join("room-1", "a")
    await manager.join("room-2", "b")

    assert await manager.send_offer("a", "b", {"sdp": "x"}) is True
    assert conn_a.messages[-1]["type"] == "receive-offer"


@pytest.mark.asyncio
async def test_shared_room_requirement_blocks_cross_room_offers():
    manager = SignalingManager(require_shared_room=True)
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await connect(manager, "c")
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")
    await manager.join("room-2", "c")
    conn_a.messages.clear()

    assert await manager.send_offer("a", "c", {"sdp": "x"}) is False
    assert await manager.send_offer("a", "b", {"sdp": "y"}) is True
    assert conn_a.messages == [{"type": "receive-offer", "caller_id": "b", "signal": {"sdp": "y"}}]


@pytest.mark.asyncio
async def test_delivery_failure_is_swallowed():
    manager = SignalingManager()
    broken = BrokenConnection("a")
    await manager.register(broken.as_signaling())
    await connect(manager, "b")

    assert await manager.send_offer("a", "b", {"sdp": "x"}) is False


@pytest.mark.asyncio
async def test_disconnect_cleans_up_rooms_silently():
    manager = SignalingManager()
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")
    conn_a.messages.clear()

    assert await manager.disconnect("b") == "ROOM-1"
    assert conn_a.messages == []
    assert await manager.participants("room-1") == ["a"]

    assert await manager.disconnect("a") == "ROOM-1"
    assert manager.room_count == 0
    assert await manager.disconnect("a") is None


@pytest.mark.asyncio
async def test_disconnect_can_notify_remaining_peer():
    manager = SignalingManager(notify_peer_left=True)
    conn_a = await connect(manager, "a")
    await connect(manager, "b")
    await manager.join("room-1", "a")
    await manager.join("room-1", "b")

    await manager.disconnect("b")

    assert conn_a.messages[-1] == {"type": "peer-left", "connection_id": "b"}


@pytest.mark.asyncio
async def test_duplicate_connection_ids_are_rejected():
    manager = SignalingManager()
    await connect(manager, "a")

    with pytest.raises(DuplicateConnectionError):
        await manager.register(DummyConnection("a").as_signaling())


def test_signaling_websocket_handshake():
    with TestClient(create_app(Settings(sweep_interval_seconds=0))) as client, client.websocket_connect(
        "/api/signaling?connection_id=a"
    ) as ws_a:
        assert ws_a.receive_json() == {"type": "connected", "connection_id": "a"}
        ws_a.send_json({"type": "join-room", "room_id": "ABCD2345"})
        joined_a = ws_a.receive_json()
        assert joined_a["type"] == "joined"
        assert joined_a["participants"] == []

        with client.websocket_connect("/api/signaling?connection_id=b") as ws_b:
            assert ws_b.receive_json()["connection_id"] == "b"
            ws_b.send_json({"type": "join-room", "room_id": "ABCD2345"})

            notice = ws_a.receive_json()
            assert notice == {"type": "peer-joined", "connection_id": "b"}
            joined_b = ws_b.receive_json()
            assert joined_b["participants"] == ["a"]

            ws_a.send_json({"type": "send-offer", "target_id": "b", "caller_id": "a", "signal": {"sdp": "offer"}})
            offer = ws_b.receive_json()
            assert offer == {"type": "receive-offer", "caller_id": "a", "signal": {"sdp": "offer"}}

            ws_b.send_json({"type": "accept-offer", "caller_id": "a", "signal": {"sdp": "answer"}})
            accepted = ws_a.receive_json()
            assert accepted == {"type": "call-accepted", "responder_id": "b", "signal": {"sdp": "answer"}}

            with client.websocket_connect("/api/signaling?connection_id=c") as ws_c:
                ws_c.receive_json()
                ws_c.send_json({"type": "join-room", "room_id": "ABCD2345"})
                rejected = ws_c.receive_json()
                assert rejected["type"] == "error"
                assert rejected["reason"] == "room-full"


def test_signaling_websocket_reports_bad_messages():
    with TestClient(create_app(Settings(sweep_interval_seconds=0))) as client, client.websocket_connect(
        "/api/signaling?connection_id=a"
    ) as ws:
        ws.receive_json()

        ws.send_json({"type": "dance"})
        assert ws.receive_json()["reason"] == "invalid-message"

        ws.send_text("not json")
        assert ws.receive_json()["reason"] == "invalid-message"

        ws.send_json({"type": "send-offer", "target_id": "ghost", "caller_id": "a", "signal": None})
        ws.send_json({"type": "join-room", "room_id": "room-1"})
        assert ws.receive_json()["type"] == "joined"


def test_signaling_websocket_answers_binary_frames_and_keeps_going():
    with TestClient(create_app(Settings(sweep_interval_seconds=0))) as client, client.websocket_connect(
        "/api/signaling?connection_id=a"
    ) as ws:
        ws.receive_json()

        ws.send_bytes(b'{"type": "join-room", "room_id": "ABCD2345"}')
        rejected = ws.receive_json()
        assert rejected["type"] == "error"
        assert rejected["reason"] == "invalid-message"

        ws.send_json({"type": "join-room", "room_id": "ABCD2345"})
        assert ws.receive_json()["type"] == "joined"


def test_signaling_websocket_upper_cases_room_ids():
    with TestClient(create_app(Settings(sweep_interval_seconds=0))) as client:
        with client.websocket_connect("/api/signaling?connection_id=a") as ws_a:
            ws_a.receive_json()
            ws_a.send_json({"type": "join-room", "room_id": "ABCD2345"})
            ws_a.receive_json()

            with client.websocket_connect("/api/signaling?connection_id=b") as ws_b:
                ws_b.receive_json()
                ws_b.send_json({"type": "join-room", "room_id": "abcd2345"})

                assert ws_a.receive_json() == {"type": "peer-joined", "connection_id": "b"}
                joined = ws_b.receive_json()
                assert joined["room_id"] == "ABCD2345"
                assert joined["participants"] == ["a"]
