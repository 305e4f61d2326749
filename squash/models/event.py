"""Event model - a single scheduled session."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squash.models.base import Base, UTCDateTime


class EventStatus(str, enum.Enum):
    CREATED = "created"
    ANNOUNCED = "announced"
    CANCELLED = "cancelled"
    FINALIZED = "finalized"
    # Reserved for historical reporting; no transition produces these
    FINISHED = "finished"
    PAID = "paid"


class Event(Base):
    """Bookable session with its own lifecycle, participants and payments."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    scaffold_id: Mapped[Optional[str]] = mapped_column(ForeignKey("scaffolds.id"), nullable=True)
    starts_at: Mapped[datetime] = mapped_column("datetime", UTCDateTime, nullable=False, index=True)
    courts: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        Enum(
            EventStatus,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=EventStatus.CREATED,
        nullable=False,
    )
    message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)  # Announcement message
    owner_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # Discord user ID
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    scaffold = relationship("Scaffold", back_populates="events")
    memberships = relationship(
        "EventParticipant", back_populates="event", cascade="all, delete-orphan"
    )
    payments = relationship(
        "Payment", back_populates="event", cascade="all, delete-orphan"
    )
