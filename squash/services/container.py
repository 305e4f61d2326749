"""Wires repositories, lock and transport into the services the bot uses."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import async_sessionmaker

from squash.models.base import async_session_factory
from squash.repos.event import EventRepo
from squash.repos.participant import MembershipRepo, ParticipantRepo
from squash.repos.payment import PaymentRepo
from squash.repos.scaffold import ScaffoldRepo
from squash.repos.settings import SettingsRepo
from squash.services.event_lock import EventLock
from squash.services.lifecycle import EventLifecycle
from squash.services.scaffolds import ScaffoldService
from squash.services.spawner import ScaffoldSpawner
from squash.services.transport import Transport


@dataclass
class Services:
    settings: SettingsRepo
    participants: ParticipantRepo
    lifecycle: EventLifecycle
    scaffolds: ScaffoldService
    spawner: ScaffoldSpawner
    transport: Transport


def build_services(transport: Transport, session_factory: async_sessionmaker = async_session_factory) -> Services:
    events = EventRepo(session_factory)
    scaffolds = ScaffoldRepo(session_factory)
    participants = ParticipantRepo(session_factory)
    memberships = MembershipRepo(session_factory)
    payments = PaymentRepo(session_factory)
    settings = SettingsRepo(session_factory)

    lifecycle = EventLifecycle(
        events=events,
        scaffolds=scaffolds,
        participants=participants,
        memberships=memberships,
        payments=payments,
        settings=settings,
        transport=transport,
        lock=EventLock(),
    )
    return Services(
        settings=settings,
        participants=participants,
        lifecycle=lifecycle,
        scaffolds=ScaffoldService(scaffolds, participants, settings, transport),
        spawner=ScaffoldSpawner(scaffolds, events, settings, lifecycle),
        transport=transport,
    )
