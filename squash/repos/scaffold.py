"""Scaffold repository."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from squash.models import Scaffold
from squash.models.base import async_session_factory, new_id, utcnow


class ScaffoldRepo:
    """CRUD for scaffolds. Removal is a soft delete (events keep their scaffold_id)."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def get_scaffolds(self) -> list[Scaffold]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Scaffold).where(Scaffold.deleted_at.is_(None)).order_by(Scaffold.id)
            )
            return list(result.scalars().all())

    async def get_deleted_scaffolds(self) -> list[Scaffold]:
        async with self._session_factory() as session:
            result = await session.execute(select(Scaffold).where(Scaffold.deleted_at.is_not(None)))
            return list(result.scalars().all())

    async def find_by_id(self, scaffold_id: str, include_deleted: bool = False) -> Optional[Scaffold]:
        async with self._session_factory() as session:
            scaffold = await session.get(Scaffold, scaffold_id)
            if scaffold and scaffold.deleted_at is not None and not include_deleted:
                return None
            return scaffold

    async def create_scaffold(
        self,
        day_of_week: str,
        time: str,
        courts: int,
        announcement_deadline: Optional[str] = None,
        owner_id: Optional[int] = None,
    ) -> Scaffold:
        scaffold = Scaffold(
            id=new_id("sc"),
            day_of_week=day_of_week,
            time=time,
            default_courts=courts,
            is_active=True,
            announcement_deadline=announcement_deadline,
            owner_id=owner_id,
        )
        async with self._session_factory() as session:
            session.add(scaffold)
            await session.commit()
            await session.refresh(scaffold)
        return scaffold

    async def update_scaffold(self, scaffold_id: str, **fields) -> Optional[Scaffold]:
        async with self._session_factory() as session:
            scaffold = await session.get(Scaffold, scaffold_id)
            if not scaffold:
                return None
            for name, value in fields.items():
                setattr(scaffold, name, value)
            await session.commit()
            await session.refresh(scaffold)
            return scaffold

    async def set_active(self, scaffold_id: str, is_active: bool) -> Optional[Scaffold]:
        return await self.update_scaffold(scaffold_id, is_active=is_active)

    async def soft_delete(self, scaffold_id: str) -> Optional[Scaffold]:
        return await self.update_scaffold(scaffold_id, deleted_at=utcnow())

    async def restore(self, scaffold_id: str) -> Optional[Scaffold]:
        return await self.update_scaffold(scaffold_id, deleted_at=None)
