"""Event repository."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from squash.models import Event, EventStatus
from squash.models.base import async_session_factory, new_id, utcnow


class EventRepo:
    """CRUD for events. Soft-deleted events are invisible unless asked for."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def get_events(self, include_deleted: bool = False) -> list[Event]:
        stmt = select(Event).order_by(Event.starts_at)
        if not include_deleted:
            stmt = stmt.where(Event.deleted_at.is_(None))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_events_by_scaffold(self, scaffold_id: str, include_deleted: bool = False) -> list[Event]:
        stmt = select(Event).where(Event.scaffold_id == scaffold_id)
        if not include_deleted:
            stmt = stmt.where(Event.deleted_at.is_(None))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_by_id(self, event_id: str, include_deleted: bool = False) -> Optional[Event]:
        async with self._session_factory() as session:
            event = await session.get(Event, event_id)
            if event and event.deleted_at is not None and not include_deleted:
                return None
            return event

    async def find_by_message_id(self, message_id: int) -> Optional[Event]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Event).where(Event.message_id == message_id, Event.deleted_at.is_(None))
            )
            return result.scalars().first()

    async def create_event(
        self,
        starts_at: datetime,
        courts: int,
        status: EventStatus = EventStatus.CREATED,
        scaffold_id: Optional[str] = None,
        owner_id: Optional[int] = None,
    ) -> Event:
        event = Event(
            id=new_id("ev"),
            scaffold_id=scaffold_id,
            starts_at=starts_at,
            courts=courts,
            status=status,
            owner_id=owner_id,
        )
        async with self._session_factory() as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)
        return event

    async def update_event(self, event_id: str, **fields) -> Optional[Event]:
        """Set the given columns. Returns the updated event, or None if it doesn't exist."""
        async with self._session_factory() as session:
            event = await session.get(Event, event_id)
            if not event:
                return None
            for name, value in fields.items():
                setattr(event, name, value)
            await session.commit()
            await session.refresh(event)
            return event

    async def soft_delete(self, event_id: str) -> Optional[Event]:
        return await self.update_event(event_id, deleted_at=utcnow())

    async def restore(self, event_id: str) -> Optional[Event]:
        return await self.update_event(event_id, deleted_at=None)
