"""Meeting session registry: invitation lifecycle with time-bounded validity."""
from __future__ import annotations

import asyncio
import enum
import logging
import re
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from .meeting_store import MeetingSession, MeetingStatus, MeetingStore
from .tokens import TokenGenerator, normalize_token

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=30)
SLOT_TIME_PATTERN = re.compile(r"(?:[01][0-9]|2[0-3]):[0-5][0-9]")

Clock = Callable[[], datetime]


class MeetingNotFoundError(LookupError):
    """Raised when a meeting id is not known to the registry."""

    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Meeting {meeting_id} not found")
        self.meeting_id = meeting_id


class InvalidSlotFormatError(ValueError):
    """Raised when a slot time is not a 24-hour HH:MM string."""

    def __init__(self, slot_time: object) -> None:
        super().__init__(f"Invalid slot time format {slot_time!r}. Expected HH:MM.")
        self.slot_time = slot_time


class ValidationReason(str, enum.Enum):
    NOT_FOUND = "NotFound"
    EXPIRED = "Expired"


@dataclass(slots=True)
class MeetingValidation:
    valid: bool
    meeting_id: str
    slot_time: str | None = None
    reason: ValidationReason | None = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_slot_time(value: object) -> bool:
    """Return True for strict 24-hour ``HH:MM`` strings such as ``09:30``."""

    return isinstance(value, str) and SLOT_TIME_PATTERN.fullmatch(value) is not None


class MeetingRegistry:
    """Own the meeting records in a :class:`MeetingStore`.

    ``create`` and ``confirm_slot`` are serialised by a lock; ``get`` and
    ``validate`` read snapshots without it. Expiry is derived from ``expires_at``
    on every read rather than tracked as a status.
    """

    def __init__(
        self,
        store: MeetingStore,
        *,
        generator: TokenGenerator | None = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._generator = generator or TokenGenerator()
        self._ttl = ttl
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def store(self) -> MeetingStore:
        return self._store

    async def create(self, contact: str) -> MeetingSession:
        """Allocate a fresh token and store a pending meeting for ``contact``."""

        async with self._lock:
            now = self._clock()
            created: list[MeetingSession] = []

            async def _claim(candidate: str) -> bool:
                meeting = MeetingSession(
                    id=candidate,
                    contact=contact,
                    created_at=now,
                    expires_at=now + self._ttl,
                )
                if await self._store.insert(meeting):
                    created.append(meeting)
                    return True
                return False

            await self._generator.allocate(_claim)

        meeting = created[0]
        logger.info("Meeting %s created, expires at %s", meeting.id, meeting.expires_at.isoformat())
        return meeting

    async def confirm_slot(self, meeting_id: str, slot_time: str) -> MeetingSession:
        """Record the invitee's chosen slot and mark the meeting confirmed.

        Re-confirming with another time overwrites the previous slot.
        """

        key = normalize_token(meeting_id)
        async with self._lock:
            meeting = await self._store.get(key)
            if meeting is None:
                raise MeetingNotFoundError(meeting_id)
            if not is_valid_slot_time(slot_time):
                raise InvalidSlotFormatError(slot_time)

            meeting.slot_time = slot_time
            meeting.status = MeetingStatus.CONFIRMED
            await self._store.update(meeting)

        logger.info("Slot %s confirmed for meeting %s", slot_time, key)
        return meeting

    async def get(self, meeting_id: str) -> MeetingSession | None:
        return await self._store.get(normalize_token(meeting_id))

    async def validate(self, meeting_id: str) -> MeetingValidation:
        key = normalize_token(meeting_id)
        meeting = await self._store.get(key)
        if meeting is None:
            return MeetingValidation(valid=False, meeting_id=key, reason=ValidationReason.NOT_FOUND)
        if meeting.is_expired(self._clock()):
            return MeetingValidation(
                valid=False,
                meeting_id=key,
                slot_time=meeting.slot_time,
                reason=ValidationReason.EXPIRED,
            )
        return MeetingValidation(valid=True, meeting_id=key, slot_time=meeting.slot_time)

    async def purge_expired(self, retention: timedelta = timedelta(0)) -> int:
        """Drop meetings that expired more than ``retention`` ago."""

        cutoff = self._clock() - retention
        async with self._lock:
            removed = await self._store.delete_expired_before(cutoff)
        if removed:
            logger.info("Purged %d expired meetings", removed)
        return removed


async def run_expiry_sweeper(
    registry: MeetingRegistry,
    *,
    interval_seconds: float,
    retention: timedelta,
) -> None:
    """Periodically purge long-expired meetings until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await registry.purge_expired(retention)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - keep sweeping on transient store errors
            logger.exception("Expiry sweep failed")


async def stop_task(task: asyncio.Task[None] | None) -> None:
    if task is None:
        return
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
