"""Schemas for meeting invitation endpoints."""
from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class NotificationStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"


class CreateMeetingRequest(BaseModel):
    contact: str | None = Field(default=None, description="Recipient phone number or email")


class CreateMeetingResponse(BaseModel):
    meeting_id: str
    expires_at: datetime
    join_link: str
    notification: NotificationStatus = NotificationStatus.SENT


class ConfirmSlotRequest(BaseModel):
    slot_time: str | None = Field(default=None, description="Chosen slot as 24-hour HH:MM")


class ConfirmSlotResponse(BaseModel):
    success: bool = True
    message: str


class ValidateMeetingResponse(BaseModel):
    valid: bool
    meeting_id: str
    slot_time: str | None = None
    reason: str | None = None
    message: str | None = None
