"""Database models."""
from squash.models.base import Base, init_db
from squash.models.scaffold import DayOfWeek, Scaffold
from squash.models.event import Event, EventStatus
from squash.models.participant import EventParticipant, Participant
from squash.models.payment import Payment
from squash.models.setting import Setting  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "DayOfWeek",
    "Scaffold",
    "Event",
    "EventStatus",
    "Participant",
    "EventParticipant",
    "Payment",
    "Setting",
    "init_db",
]
