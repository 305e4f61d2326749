"""Participant and membership repositories."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from squash.models import EventParticipant, Participant
from squash.models.base import async_session_factory, new_id


class ParticipantRepo:
    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def find_by_id(self, participant_id: str) -> Optional[Participant]:
        async with self._session_factory() as session:
            return await session.get(Participant, participant_id)

    async def find_by_discord_id(self, discord_id: int) -> Optional[Participant]:
        async with self._session_factory() as session:
            result = await session.execute(select(Participant).where(Participant.discord_id == discord_id))
            return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Optional[Participant]:
        username = username.lstrip("@")
        async with self._session_factory() as session:
            result = await session.execute(select(Participant).where(Participant.username == username))
            return result.scalars().first()

    async def find_or_create_participant(
        self,
        discord_id: int,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Participant:
        """Existing participant is returned untouched (first-seen name wins)."""
        existing = await self.find_by_discord_id(discord_id)
        if existing:
            return existing
        participant = Participant(
            id=new_id("pt"),
            discord_id=discord_id,
            username=username,
            display_name=display_name or username or f"User {discord_id}",
        )
        try:
            async with self._session_factory() as session:
                session.add(participant)
                await session.commit()
                await session.refresh(participant)
        except IntegrityError:
            # Another interaction created the same user between our read and insert
            existing = await self.find_by_discord_id(discord_id)
            if existing is None:
                raise
            return existing
        return participant


class MembershipRepo:
    """Event <-> participant rows with a participation counter."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def _increment(self, event_id: str, participant_id: str, participations: int) -> bool:
        """Bump an existing membership. False if there is none."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(EventParticipant)
                .where(
                    EventParticipant.event_id == event_id,
                    EventParticipant.participant_id == participant_id,
                )
                .values(participations=EventParticipant.participations + participations)
            )
            await session.commit()
            return result.rowcount > 0

    async def add_to_event(self, event_id: str, participant_id: str, participations: int = 1) -> None:
        """Insert the membership, or bump its counter if it already exists."""
        if await self._increment(event_id, participant_id, participations):
            return
        try:
            async with self._session_factory() as session:
                session.add(
                    EventParticipant(
                        event_id=event_id,
                        participant_id=participant_id,
                        participations=participations,
                    )
                )
                await session.commit()
        except IntegrityError:
            # A concurrent sign-up inserted the row first; count this one on top of it
            if not await self._increment(event_id, participant_id, participations):
                raise

    async def remove_from_event(self, event_id: str, participant_id: str) -> bool:
        """Decrement by one; the row is deleted when the counter reaches 0.

        Returns False (and changes nothing) if the participant is not a member.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(EventParticipant).where(
                    EventParticipant.event_id == event_id,
                    EventParticipant.participant_id == participant_id,
                )
            )
            membership = result.scalar_one_or_none()
            if not membership:
                return False
            if membership.participations <= 1:
                await session.execute(delete(EventParticipant).where(EventParticipant.id == membership.id))
            else:
                membership.participations -= 1
            await session.commit()
            return True

    async def get_event_participants(self, event_id: str) -> list[EventParticipant]:
        """Memberships of an event in sign-up order, with `participant` loaded."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(EventParticipant)
                .where(EventParticipant.event_id == event_id)
                .options(selectinload(EventParticipant.participant))
                .order_by(EventParticipant.id)
            )
            return list(result.scalars().all())

