"""Periodic materialization of scaffolds into announced events."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from squash.errors import Unconfigured
from squash.repos.event import EventRepo
from squash.repos.scaffold import ScaffoldRepo
from squash.repos.settings import SettingsRepo
from squash.services import access, schedule
from squash.services.lifecycle import EventLifecycle

logger = logging.getLogger("squash.spawner")


class ScaffoldSpawner:
    def __init__(
        self,
        scaffolds: ScaffoldRepo,
        events: EventRepo,
        settings: SettingsRepo,
        lifecycle: EventLifecycle,
    ):
        self.scaffolds = scaffolds
        self.events = events
        self.settings = settings
        self.lifecycle = lifecycle

    async def check_and_create_events_from_scaffolds(self, now: Optional[datetime] = None) -> int:
        """Create and announce every due occurrence. Returns how many events were created.

        One broken scaffold never stops the others; nothing is raised.
        """
        try:
            scaffolds = [s for s in await self.scaffolds.get_scaffolds() if s.is_active]
            tz = await self.settings.get_timezone()
            default_deadline = await self.settings.get_announcement_deadline()
        except Exception:
            logger.exception("Failed to load scaffolds for the periodic check")
            return 0

        created = 0
        for scaffold in scaffolds:
            try:
                if await self._process(scaffold, now, tz, default_deadline):
                    created += 1
            except Exception:
                logger.exception("Failed to process scaffold %s", scaffold.id)
        if created:
            logger.info("Created %d event(s) from scaffolds", created)
        return created

    async def _process(self, scaffold, now: Optional[datetime], tz: str, default_deadline: str) -> bool:
        occurrence = schedule.calculate_next_occurrence(scaffold, now, tz)

        existing = await self.events.get_events_by_scaffold(scaffold.id, include_deleted=True)
        if schedule.event_exists(existing, scaffold.id, occurrence):
            return False

        deadline = scaffold.announcement_deadline or default_deadline
        if not schedule.should_trigger(deadline, occurrence, tz, now):
            return False

        try:
            owner_id = await access.resolve_owner(self.settings, scaffold)
        except Unconfigured as e:
            logger.error("Skipping scaffold %s: %s", scaffold.id, e)
            return False

        event = await self.lifecycle.create_event(
            occurrence, scaffold.default_courts, owner_id=owner_id, scaffold_id=scaffold.id
        )
        try:
            await self.lifecycle.announce(event.id)
        except Exception:
            # Created but unannounced; the event stays in `created` for a manual announce
            logger.exception("Created event %s but failed to announce it", event.id)
        return True
