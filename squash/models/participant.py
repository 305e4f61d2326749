"""Participant and event membership models."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squash.models.base import Base


class Participant(Base):
    """Person who signs up for events. Created lazily on first interaction."""

    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    discord_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True, nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)  # First-seen name wins

    memberships = relationship("EventParticipant", back_populates="participant")

    @property
    def label(self) -> str:
        """@username when known, display name otherwise."""
        return f"@{self.username}" if self.username else self.display_name


class EventParticipant(Base):
    """Participant signed up for an event, occupying `participations` slots."""

    __tablename__ = "event_participants"
    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", name="uq_event_participant"),
        CheckConstraint("participations > 0", name="ck_participations_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    participant_id: Mapped[str] = mapped_column(ForeignKey("participants.id"), nullable=False)
    participations: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    event: Mapped["Event"] = relationship("Event", back_populates="memberships")
    participant: Mapped["Participant"] = relationship("Participant", back_populates="memberships")
