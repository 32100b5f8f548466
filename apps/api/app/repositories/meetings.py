"""Meeting persistence helpers and the SQL-backed meeting store."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..db.session import create_schema
from ..models.meeting import Meeting
from ..services.meeting_store import MeetingSession, MeetingStore


async def get_by_id(session: AsyncSession, meeting_id: str) -> Meeting | None:
    """Return a meeting row by identifier."""

    return await session.get(Meeting, meeting_id)


async def insert_meeting(session: AsyncSession, meeting: MeetingSession) -> bool:
    """Insert a meeting row, returning False if the id already exists."""

    if await session.get(Meeting, meeting.id) is not None:
        return False
    session.add(
        Meeting(
            id=meeting.id,
            contact=meeting.contact,
            created_at=meeting.created_at,
            expires_at=meeting.expires_at,
            slot_time=meeting.slot_time,
            status=meeting.status,
        )
    )
    await session.flush()
    return True


async def update_slot(session: AsyncSession, meeting: MeetingSession) -> None:
    """Copy slot and status from ``meeting`` onto its stored row."""

    row = await session.get(Meeting, meeting.id)
    if row is None:
        raise KeyError(meeting.id)
    row.slot_time = meeting.slot_time
    row.status = meeting.status
    session.add(row)


async def delete_expired_before(session: AsyncSession, cutoff: datetime) -> int:
    """Delete meetings that expired before ``cutoff`` and return the count."""

    result = await session.execute(delete(Meeting).where(Meeting.expires_at < cutoff))
    return result.rowcount or 0


def to_record(row: Meeting) -> MeetingSession:
    return MeetingSession(
        id=row.id,
        contact=row.contact,
        created_at=_ensure_tz(row.created_at),
        expires_at=_ensure_tz(row.expires_at),
        slot_time=row.slot_time,
        status=row.status,
    )


def _ensure_tz(value: datetime) -> datetime:
    """Ensure the datetime is timezone-aware in UTC (SQLite drops tzinfo)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlMeetingStore(MeetingStore):
    """Meeting store backed by an async SQLAlchemy engine."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], engine: AsyncEngine | None = None) -> None:
        self._sessionmaker = sessionmaker
        self._engine = engine

    async def insert(self, meeting: MeetingSession) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    return await insert_meeting(session, meeting)
        except IntegrityError:
            # Concurrent insert of the same id from another process.
            return False

    async def get(self, meeting_id: str) -> MeetingSession | None:
        async with self._sessionmaker() as session:
            row = await get_by_id(session, meeting_id)
            return to_record(row) if row is not None else None

    async def update(self, meeting: MeetingSession) -> None:
        async with self._sessionmaker() as session:
            async with session.begin():
                await update_slot(session, meeting)

    async def delete_expired_before(self, cutoff: datetime) -> int:
        async with self._sessionmaker() as session:
            async with session.begin():
                return await delete_expired_before(session, cutoff)

    async def open(self) -> None:
        if self._engine is not None:
            await create_schema(self._engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
