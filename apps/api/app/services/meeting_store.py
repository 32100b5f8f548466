"""Meeting session records and the storage interface behind the registry."""
from __future__ import annotations

import asyncio
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional


class MeetingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(slots=True)
class MeetingSession:
    """Invitation record owned by the meeting registry."""

    id: str
    contact: str
    created_at: datetime
    expires_at: datetime
    slot_time: str | None = None
    status: MeetingStatus = MeetingStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def copy(self) -> "MeetingSession":
        return replace(self)


class MeetingStore(ABC):
    """Storage backend for meeting sessions."""

    @abstractmethod
    async def insert(self, meeting: MeetingSession) -> bool:
        """Store ``meeting`` unless its id is taken. Return False on collision."""

    @abstractmethod
    async def get(self, meeting_id: str) -> Optional[MeetingSession]:
        """Return a snapshot of the stored meeting, or None."""

    @abstractmethod
    async def update(self, meeting: MeetingSession) -> None:
        """Overwrite the stored record for ``meeting.id``."""

    @abstractmethod
    async def delete_expired_before(self, cutoff: datetime) -> int:
        """Remove meetings whose expiry is earlier than ``cutoff``."""

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None


class InMemoryMeetingStore(MeetingStore):
    """Process-local store. Contents are lost on restart."""

    def __init__(self) -> None:
        self._meetings: Dict[str, MeetingSession] = {}
        self._lock = asyncio.Lock()

    async def insert(self, meeting: MeetingSession) -> bool:
        async with self._lock:
            if meeting.id in self._meetings:
                return False
            self._meetings[meeting.id] = meeting.copy()
            return True

    async def get(self, meeting_id: str) -> Optional[MeetingSession]:
        entry = self._meetings.get(meeting_id)
        if entry is None:
            return None
        return entry.copy()

    async def update(self, meeting: MeetingSession) -> None:
        async with self._lock:
            if meeting.id not in self._meetings:
                raise KeyError(meeting.id)
            self._meetings[meeting.id] = meeting.copy()

    async def delete_expired_before(self, cutoff: datetime) -> int:
        async with self._lock:
            expired = [key for key, entry in self._meetings.items() if entry.expires_at < cutoff]
            for key in expired:
                self._meetings.pop(key, None)
            return len(expired)
