"""Admin CRUD over scaffolds (recurring weekly templates)."""
from __future__ import annotations

import logging
from typing import Optional

from squash.errors import InvalidScaffold, NotFound
from squash.models import Scaffold
from squash.repos.participant import ParticipantRepo
from squash.repos.scaffold import ScaffoldRepo
from squash.repos.settings import SettingsRepo
from squash.services import access, schedule
from squash.services.formatters import LogEvent
from squash.services.transport import Transport

logger = logging.getLogger("squash.scaffolds")


def validate_day(day: str) -> str:
    parsed = schedule.parse_day_of_week(day)
    if parsed is None:
        raise InvalidScaffold(f'Invalid day "{day}". Use Mon, Tue, Wed, Thu, Fri, Sat or Sun')
    return parsed


def validate_courts(courts: int) -> int:
    if courts < 1:
        raise InvalidScaffold("Courts must be a positive number")
    return courts


def validate_deadline(deadline: Optional[str]) -> Optional[str]:
    if deadline is None or not deadline.strip():
        return None
    deadline = deadline.strip()
    schedule.parse_offset(deadline)
    return deadline


class ScaffoldService:
    def __init__(
        self,
        scaffolds: ScaffoldRepo,
        participants: ParticipantRepo,
        settings: SettingsRepo,
        transport: Transport,
    ):
        self.scaffolds = scaffolds
        self.participants = participants
        self.settings = settings
        self.transport = transport

    async def _get_owned(self, scaffold_id: str, actor_id: int, what: str, include_deleted: bool = False) -> Scaffold:
        scaffold = await self.scaffolds.find_by_id(scaffold_id, include_deleted=include_deleted)
        if not scaffold:
            raise NotFound("scaffold", scaffold_id)
        await access.require_owner_or_admin(self.settings, actor_id, scaffold.owner_id, what)
        return scaffold

    async def add(
        self,
        day: str,
        time: str,
        courts: int,
        actor_id: int,
        deadline: Optional[str] = None,
        owner_id: Optional[int] = None,
    ) -> Scaffold:
        await access.require_admin(self.settings, actor_id, "create scaffolds")
        day = validate_day(day)
        schedule.parse_time(time)
        scaffold = await self.scaffolds.create_scaffold(
            day_of_week=day,
            time=time.strip(),
            courts=validate_courts(courts),
            announcement_deadline=validate_deadline(deadline),
            owner_id=owner_id or actor_id,
        )
        logger.info("Created scaffold %s: %s %s", scaffold.id, scaffold.day_of_week, scaffold.time)
        self.transport.log_event(
            LogEvent("scaffold_created", {"day": scaffold.day_of_week, "time": scaffold.time, "courts": courts})
        )
        return scaffold

    async def list(self) -> list[Scaffold]:
        return await self.scaffolds.get_scaffolds()

    async def list_deleted(self) -> list[Scaffold]:
        return await self.scaffolds.get_deleted_scaffolds()

    async def toggle(self, scaffold_id: str, actor_id: int) -> Scaffold:
        scaffold = await self._get_owned(scaffold_id, actor_id, "toggle this scaffold")
        scaffold = await self.scaffolds.set_active(scaffold.id, not scaffold.is_active)
        self.transport.log_event(
            LogEvent("scaffold_toggled", {"scaffold_id": scaffold.id, "active": scaffold.is_active})
        )
        return scaffold

    async def edit(
        self,
        scaffold_id: str,
        actor_id: int,
        day: Optional[str] = None,
        time: Optional[str] = None,
        courts: Optional[int] = None,
        deadline: Optional[str] = None,
    ) -> Scaffold:
        """Change any subset of fields. An empty-string deadline clears the override."""
        scaffold = await self._get_owned(scaffold_id, actor_id, "edit this scaffold")
        fields = {}
        if day is not None:
            fields["day_of_week"] = validate_day(day)
        if time is not None:
            schedule.parse_time(time)
            fields["time"] = time.strip()
        if courts is not None:
            fields["default_courts"] = validate_courts(courts)
        if deadline is not None:
            fields["announcement_deadline"] = validate_deadline(deadline)
        if not fields:
            return scaffold
        scaffold = await self.scaffolds.update_scaffold(scaffold.id, **fields)
        logger.info("User %s edited scaffold %s: %s", actor_id, scaffold.id, ", ".join(fields))
        return scaffold

    async def transfer(self, scaffold_id: str, actor_id: int, target_username: str) -> Scaffold:
        scaffold = await self._get_owned(scaffold_id, actor_id, "transfer this scaffold")
        target = await self.participants.find_by_username(target_username)
        if not target or target.discord_id is None:
            raise NotFound("user", f"@{target_username.lstrip('@')}")
        scaffold = await self.scaffolds.update_scaffold(scaffold.id, owner_id=target.discord_id)
        logger.info("User %s transferred scaffold %s to %s", actor_id, scaffold.id, target.label)
        return scaffold

    async def remove(self, scaffold_id: str, actor_id: int) -> Scaffold:
        scaffold = await self._get_owned(scaffold_id, actor_id, "remove this scaffold")
        scaffold = await self.scaffolds.soft_delete(scaffold.id)
        self.transport.log_event(LogEvent("scaffold_removed", {"scaffold_id": scaffold.id}))
        return scaffold

    async def restore(self, scaffold_id: str, actor_id: int) -> Scaffold:
        scaffold = await self._get_owned(scaffold_id, actor_id, "restore this scaffold", include_deleted=True)
        if scaffold.deleted_at is None:
            return scaffold
        scaffold = await self.scaffolds.restore(scaffold.id)
        logger.info("User %s restored scaffold %s", actor_id, scaffold.id)
        return scaffold
