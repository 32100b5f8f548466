"""Data contracts for the signaling WebSocket."""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from ..services.tokens import normalize_token


class JoinRoomMessage(BaseModel):
    type: Literal["join-room"]
    room_id: str = Field(..., min_length=1, max_length=64, description="Room name, usually the meeting id")

    @field_validator("room_id")
    @classmethod
    def _normalize_room(cls, value: str) -> str:
        """Rooms share the meeting id's case-insensitive form."""

        room = normalize_token(value)
        if not room:
            raise ValueError("room_id must not be blank")
        return room


class SendOfferMessage(BaseModel):
    type: Literal["send-offer"]
    target_id: str = Field(..., min_length=1, description="Connection that should receive the offer")
    caller_id: str = Field(..., min_length=1, description="Connection the answer should return to")
    signal: Any = Field(default=None, description="Opaque SDP or ICE payload")


class AcceptOfferMessage(BaseModel):
    type: Literal["accept-offer"]
    caller_id: str = Field(..., min_length=1, description="Connection that sent the offer")
    signal: Any = Field(default=None, description="Opaque SDP or ICE payload")


ClientMessage = Annotated[
    Union[JoinRoomMessage, SendOfferMessage, AcceptOfferMessage],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
