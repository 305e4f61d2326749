"""Settings repository. Values in the settings table override environment config."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

import config
from squash.models import Setting
from squash.models.base import async_session_factory


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class SettingsRepo:
    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def get_settings(self) -> dict[str, str]:
        async with self._session_factory() as session:
            result = await session.execute(select(Setting))
            return {row.key: row.value for row in result.scalars().all()}

    async def get_setting(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            row = await session.get(Setting, key)
            return row.value if row else None

    async def set_setting(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(Setting, key)
            if row:
                row.value = value
            else:
                session.add(Setting(key=key, value=value))
            await session.commit()

    async def get_court_price(self) -> int:
        """Price of one court in minor units (default 2000)."""
        value = _to_int(await self.get_setting("court_price"))
        return value if value is not None else config.COURT_PRICE

    async def get_timezone(self) -> str:
        return await self.get_setting("timezone") or config.TIMEZONE

    async def get_announcement_deadline(self) -> str:
        """Offset notation such as "-1d 12:00"."""
        return await self.get_setting("announcement_deadline") or config.ANNOUNCEMENT_DEADLINE

    async def get_main_channel_id(self) -> Optional[int]:
        value = _to_int(await self.get_setting("main_channel_id"))
        return value if value is not None else config.MAIN_CHANNEL_ID

    async def get_admin_id(self) -> Optional[int]:
        value = _to_int(await self.get_setting("admin_id"))
        return value if value is not None else config.ADMIN_USER_ID
